"""
Structlog 日志配置模块

适配器本身不调用 configure_logging()，由宿主进程（或测试）在启动时调用一次；
未配置时 structlog 使用默认的控制台输出。
"""
import json
import logging
from typing import Any, List, MutableMapping, Optional

import structlog
from structlog.contextvars import merge_contextvars
from structlog.dev import ConsoleRenderer
from structlog.processors import JSONRenderer, TimeStamper, add_log_level
from structlog.stdlib import ProcessorFormatter

from core.config import settings

# 凭据类字段名，无论出现在哪条日志里都替换掉
SECRET_KEYS = frozenset({
    "application_key",
    "authorization",
    "authorization_token",
    "token",
    "upload_auth_token",
})
REDACTED = "***"


def redact_secrets(_logger: Any, _method: str, event_dict: MutableMapping[str, Any]) -> MutableMapping[str, Any]:
    for key in SECRET_KEYS.intersection(event_dict):
        event_dict[key] = REDACTED
    return event_dict


def get_renderer() -> Any:
    """DEBUG 下用彩色控制台，其余环境输出 JSON（保留中文等非 ASCII 字符）。"""
    if settings.DEBUG:
        return ConsoleRenderer(colors=True)

    def _dumps(obj, default=None, **kwargs):
        return json.dumps(obj, ensure_ascii=False, default=default, **kwargs)

    return JSONRenderer(serializer=_dumps)


def configure_logging(level: Optional[str] = None) -> None:
    """配置 structlog 并把标准库 logging（httpx、tenacity）桥接到同一处理链。"""
    shared_pre_chain: List[Any] = [
        merge_contextvars,
        add_log_level,
        TimeStamper(fmt="iso"),
        redact_secrets,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]

    structlog.configure(
        processors=[*shared_pre_chain, ProcessorFormatter.wrap_for_formatter],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    handler = logging.StreamHandler()
    handler.setFormatter(ProcessorFormatter(
        foreign_pre_chain=shared_pre_chain,
        processors=[ProcessorFormatter.remove_processors_meta, get_renderer()],
    ))

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    if settings.DEBUG:
        root.setLevel(logging.DEBUG)
    else:
        root.setLevel(getattr(logging, (level or settings.LOG_LEVEL).upper(), logging.INFO))

    # httpx 在 INFO 级别会记录完整请求 URL（上传 URL 自带凭据）
    logging.getLogger("httpx").setLevel(logging.WARNING)


def get_logger(name: str = __name__) -> structlog.stdlib.BoundLogger:
    return structlog.get_logger(name)
