"""
REST API客户端基类

B2 的 API、上传、下载分属不同主机，因此 endpoint 既可以是相对 base_url
的路径，也可以是完整 URL。提供：
- 瞬时错误（429/5xx/网络）自动重试，可按请求关闭
- 错误映射为带服务端错误码的 APIError 子类
- 超时控制与可注入的 httpx 传输层
"""
import json
import logging
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional, Union

import httpx
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    before_sleep_log,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from core.config import settings

logger = logging.getLogger(__name__)


class HTTPMethod(Enum):
    GET = "GET"
    POST = "POST"
    HEAD = "HEAD"


@dataclass
class APIResponse:
    """API响应封装（错误响应也会被封装后挂到异常上）"""
    status_code: int
    headers: Dict[str, str]
    data: Any
    raw_content: bytes
    elapsed_ms: float
    request_id: Optional[str] = None

    @property
    def is_error(self) -> bool:
        return self.status_code >= 400

    def json(self) -> Any:
        if self.data is not None:
            return self.data
        return json.loads(self.raw_content)


class APIError(Exception):
    """API错误基类

    error_code 保存服务端返回的机器可读错误码（B2 的 ``code`` 字段，
    如 ``expired_auth_token``），上层据此决定是否重新授权。
    """
    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        response: Optional[APIResponse] = None,
        request_id: Optional[str] = None,
        error_code: Optional[str] = None,
    ):
        self.message = message
        self.status_code = status_code
        self.response = response
        self.request_id = request_id
        self.error_code = error_code
        super().__init__(self.message)

    def __str__(self):
        parts = [self.message]
        if self.error_code:
            parts.append(f"Code: {self.error_code}")
        if self.status_code:
            parts.append(f"Status: {self.status_code}")
        if self.request_id:
            parts.append(f"Request ID: {self.request_id}")
        return " | ".join(parts)


class APIConnectionError(APIError):
    """请求未得到响应（超时或网络错误）"""


class RateLimitError(APIError):
    pass


class AuthenticationError(APIError):
    """401/403"""


class NotFoundError(APIError):
    pass


class ServerError(APIError):
    pass


class RetryableAPIError(APIError):
    """瞬时错误，仅在重试循环内部使用"""

    def __init__(self, response: APIResponse, retry_after: Optional[float] = None):
        super().__init__(
            message=f"Transient API error with status {response.status_code}",
            status_code=response.status_code,
            response=response,
            request_id=response.request_id,
        )
        self.retry_after = retry_after


RETRY_STATUS_CODES = {429, 500, 502, 503, 504}

# Retry-After 上限（秒），避免服务端给出过长的等待
MAX_RETRY_AFTER = 30.0

ERROR_CLASS_BY_STATUS = {
    401: AuthenticationError,
    403: AuthenticationError,
    404: NotFoundError,
    429: RateLimitError,
    500: ServerError,
    502: ServerError,
    503: ServerError,
    504: ServerError,
}


class BaseAPIClient:
    """
    REST API客户端基类

    子类只需组织 endpoint 与请求体；重试、错误映射与连接管理在这里完成。
    """

    def __init__(
        self,
        base_url: str,
        timeout: float = 30.0,
        max_retries: int = 3,
        retry_delay: float = 1.0,
        headers: Optional[Dict[str, str]] = None,
        verify_ssl: bool = True,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Args:
            base_url: 相对 endpoint 的基础 URL，可在授权后替换
            timeout: 请求超时时间（秒）
            max_retries: 瞬时错误的最大重试次数
            retry_delay: 指数退避的初始延迟（秒）
            headers: 额外默认请求头
            verify_ssl: 是否验证SSL证书
            transport: 自定义 httpx 传输层（测试中注入 MockTransport）
        """
        self.base_url = base_url.rstrip('/')
        self.timeout = timeout
        self.max_retries = max_retries
        self.retry_delay = retry_delay
        self.verify_ssl = verify_ssl
        self.transport = transport

        self.default_headers = {
            "Accept": "application/json",
            "User-Agent": settings.user_agent,
        }
        if headers:
            self.default_headers.update(headers)

        self._client: Optional[httpx.AsyncClient] = None

    def set_auth_token(self, token: str, header_name: str = "Authorization", prefix: str = "Bearer"):
        """设置认证令牌；B2 直接使用裸 token，传 prefix="" 即可"""
        self.default_headers[header_name] = f"{prefix} {token}" if prefix else token

    @property
    async def client(self) -> httpx.AsyncClient:
        """获取或创建HTTP客户端"""
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=httpx.Timeout(self.timeout),
                verify=self.verify_ssl,
                follow_redirects=True,
                transport=self.transport,
            )
        return self._client

    async def close(self):
        if self._client:
            await self._client.aclose()
            self._client = None

    def _build_url(self, endpoint: str) -> str:
        if endpoint.startswith(("http://", "https://")):
            return endpoint
        return f"{self.base_url}/{endpoint.lstrip('/')}"

    def _handle_error_response(self, response: APIResponse):
        """按状态码抛出对应的 APIError 子类，保留服务端 message 与 code"""
        error_class = ERROR_CLASS_BY_STATUS.get(response.status_code, APIError)

        error_message = f"API request failed with status {response.status_code}"
        error_code = None
        if isinstance(response.data, dict):
            error_message = (
                response.data.get("message") or
                response.data.get("error") or
                error_message
            )
            code = response.data.get("code")
            error_code = str(code) if code else None

        raise error_class(
            message=error_message,
            status_code=response.status_code,
            response=response,
            request_id=response.request_id,
            error_code=error_code,
        )

    def _retry_wait(self, retry_state: RetryCallState) -> float:
        """指数退避；429 带 Retry-After 时改用该值，上限 MAX_RETRY_AFTER。

        tenacity 只在还有下一次尝试时才 sleep，单次请求（max_retries=0）不会等待。
        """
        exc = retry_state.outcome.exception() if retry_state.outcome else None
        if isinstance(exc, RetryableAPIError) and exc.retry_after:
            return min(exc.retry_after, MAX_RETRY_AFTER)
        backoff = wait_exponential(
            multiplier=self.retry_delay,
            min=self.retry_delay,
            max=self.retry_delay * 8
        )
        return backoff(retry_state)

    async def _send_once(
        self,
        method: str,
        url: str,
        headers: Dict[str, str],
        **kwargs
    ) -> APIResponse:
        start_time = datetime.now()
        client = await self.client
        response = await client.request(method=method, url=url, headers=headers, **kwargs)
        elapsed = (datetime.now() - start_time).total_seconds() * 1000

        response_data = None
        if "application/json" in response.headers.get("content-type", "") and response.content:
            try:
                response_data = response.json()
            except json.JSONDecodeError:
                response_data = None

        api_response = APIResponse(
            status_code=response.status_code,
            headers=dict(response.headers),
            data=response_data,
            raw_content=response.content,
            elapsed_ms=elapsed,
            request_id=response.headers.get("x-bz-request-id") or response.headers.get("x-request-id"),
        )
        logger.debug(
            "API %s %s -> %s (%.0fms)", method, url.split("?")[0], api_response.status_code, elapsed
        )

        if api_response.status_code in RETRY_STATUS_CODES:
            retry_after: Optional[float] = None
            if api_response.status_code == 429:
                try:
                    retry_after = float(api_response.headers.get("retry-after") or 0) or None
                except ValueError:
                    retry_after = None
            raise RetryableAPIError(api_response, retry_after=retry_after)

        if api_response.is_error:
            self._handle_error_response(api_response)

        return api_response

    async def _request(
        self,
        method: Union[str, HTTPMethod],
        endpoint: str,
        params: Optional[Dict[str, Any]] = None,
        json_data: Optional[Dict[str, Any]] = None,
        content: Optional[bytes] = None,
        headers: Optional[Dict[str, str]] = None,
        max_retries: Optional[int] = None,
    ) -> APIResponse:
        """
        发送HTTP请求

        Args:
            method: HTTP方法
            endpoint: API端点或绝对URL
            params: 查询参数
            json_data: JSON请求体
            content: 原始请求体（上传文件内容）
            headers: 覆盖默认请求头
            max_retries: 覆盖实例级重试次数，0 表示只发送一次

        Raises:
            APIConnectionError: 超时或网络错误（重试耗尽后）
            APIError: 服务端返回错误状态
        """
        if isinstance(method, HTTPMethod):
            method = method.value

        url = self._build_url(endpoint)
        request_headers = {**self.default_headers, **(headers or {})}

        retries = self.max_retries if max_retries is None else max_retries
        retrying = AsyncRetrying(
            reraise=True,
            stop=stop_after_attempt(max(retries, 0) + 1),
            wait=self._retry_wait,
            retry=retry_if_exception_type((httpx.TransportError, RetryableAPIError)),
            before_sleep=before_sleep_log(logger, logging.WARNING)
        )

        try:
            async for attempt in retrying:
                with attempt:
                    return await self._send_once(
                        method,
                        url,
                        request_headers,
                        params=params,
                        json=json_data,
                        content=content,
                    )
        except httpx.TimeoutException as exc:
            raise APIConnectionError(f"Request timeout after {self.timeout}s") from exc
        except httpx.TransportError as exc:
            raise APIConnectionError(f"Transport error: {exc}") from exc
        except RetryableAPIError as exc:
            self._handle_error_response(exc.response)
        except APIError:
            raise
        except Exception as exc:
            logger.error(f"Unexpected error during API request: {exc}")
            raise APIError(f"Unexpected error: {exc}") from exc

    async def get(self, endpoint: str, **kwargs) -> APIResponse:
        return await self._request(HTTPMethod.GET, endpoint, **kwargs)

    async def post(self, endpoint: str, **kwargs) -> APIResponse:
        return await self._request(HTTPMethod.POST, endpoint, **kwargs)

    async def head(self, endpoint: str, **kwargs) -> APIResponse:
        return await self._request(HTTPMethod.HEAD, endpoint, **kwargs)
