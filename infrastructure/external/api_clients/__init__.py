"""
API客户端模块

提供与外部REST API集成的客户端实现
"""
from .base import BaseAPIClient, APIResponse, APIError
from .b2 import B2Client

__all__ = [
    "BaseAPIClient",
    "APIResponse",
    "APIError",
    "B2Client",
]
