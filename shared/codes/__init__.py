"""
Shared business codes used across layers (Domain/Core/Infrastructure).

This package exposes BusinessCode at `shared.codes` together with the
HTTP status each code is reported as to the host platform.
"""
from enum import IntEnum


class BusinessCode(IntEnum):
    """Unified business status codes (single source of truth)."""

    # Success
    SUCCESS = 0

    # Parameter errors (1xxxx)
    PARAM_ERROR = 10000

    # Business errors (2xxxx)
    NOT_FOUND = 20006  # Generic resource not found

    # Permission errors (3xxxx)
    UNAUTHORIZED = 30001
    FORBIDDEN = 30002

    # System errors (4xxxx)
    SYSTEM_ERROR = 40000


HTTP_STATUS_BY_CODE: dict[BusinessCode, int] = {
    BusinessCode.SUCCESS: 200,
    BusinessCode.PARAM_ERROR: 400,
    BusinessCode.UNAUTHORIZED: 401,
    BusinessCode.FORBIDDEN: 403,
    BusinessCode.NOT_FOUND: 404,
    BusinessCode.SYSTEM_ERROR: 500,
}


__all__ = ["BusinessCode", "HTTP_STATUS_BY_CODE"]
