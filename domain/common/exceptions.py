"""领域层业务异常定义，供领域与基础设施使用。

宿主平台按异常类型（而非消息文本）渲染错误页面，因此存储适配器读取失败时
必须映射为下列精确的类型。
"""
from __future__ import annotations

from typing import Optional
from shared.codes import BusinessCode, HTTP_STATUS_BY_CODE


class BusinessException(Exception):
    """业务异常基类"""

    def __init__(
        self,
        code: int,
        message: str,
        error_type: str = "BusinessError",
        details: Optional[dict] = None,
        field: Optional[str] = None,
        message_key: Optional[str] = None,
        format_params: Optional[dict] = None,
    ) -> None:
        self.code = code
        self.message = message
        self.error_type = error_type
        self.details = details
        self.field = field
        self.message_key = message_key
        self.format_params = format_params
        super().__init__(self.message)

    @property
    def status_code(self) -> int:
        try:
            return HTTP_STATUS_BY_CODE[BusinessCode(self.code)]
        except (ValueError, KeyError):
            return 400


class BadRequestError(BusinessException):
    def __init__(self, message: Optional[str] = None, *, details: Optional[dict] = None):
        super().__init__(
            code=BusinessCode.PARAM_ERROR,
            message=message or "Bad request",
            error_type="BadRequestError",
            details=details,
            message_key="request.bad",
        )


class UnauthorizedError(BusinessException):
    def __init__(self, message: Optional[str] = None, *, details: Optional[dict] = None):
        super().__init__(
            code=BusinessCode.UNAUTHORIZED,
            message=message or "Unauthorized",
            error_type="UnauthorizedError",
            details=details,
            message_key="auth.unauthorized",
        )


class NoPermissionError(BusinessException):
    def __init__(self, message: Optional[str] = None, *, details: Optional[dict] = None):
        super().__init__(
            code=BusinessCode.FORBIDDEN,
            message=message or "Permission denied",
            error_type="NoPermissionError",
            details=details,
            message_key="auth.forbidden",
        )


class NotFoundError(BusinessException):
    def __init__(self, message: Optional[str] = None, *, details: Optional[dict] = None):
        super().__init__(
            code=BusinessCode.NOT_FOUND,
            message=message or "Resource not found",
            error_type="NotFoundError",
            details=details,
            message_key="file.not_found",
        )


class InternalServerError(BusinessException):
    def __init__(self, message: Optional[str] = None, *, details: Optional[dict] = None):
        super().__init__(
            code=BusinessCode.SYSTEM_ERROR,
            message=message or "Internal server error",
            error_type="InternalServerError",
            details=details,
            message_key="system.error",
        )


_ERROR_BY_STATUS: dict[int, type[BusinessException]] = {
    400: BadRequestError,
    401: UnauthorizedError,
    403: NoPermissionError,
    404: NotFoundError,
}


def error_for_status(
    status_code: Optional[int],
    message: Optional[str] = None,
    *,
    details: Optional[dict] = None,
) -> BusinessException:
    """按 HTTP 状态码构造宿主平台的错误类型，未知状态一律视为内部错误。"""
    error_class = _ERROR_BY_STATUS.get(status_code or 0, InternalServerError)
    return error_class(message, details=details)
