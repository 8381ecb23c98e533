"""
结构化日志配置

提供统一的日志格式和配置，支持:
- 控制台输出（开发环境）
- JSON 格式输出（生产环境）
"""

import logging
import os
import sys
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

import structlog


class LogFormat(str, Enum):
    """日志格式"""
    JSON = "json"
    CONSOLE = "console"


@dataclass
class LogConfig:
    """日志配置"""
    level: str = "INFO"
    format: LogFormat = LogFormat.CONSOLE
    add_timestamp: bool = True
    service_name: str = "sticky-notes"
    extra_tags: dict = field(default_factory=dict)

    @classmethod
    def from_env(cls, service_name: str = "sticky-notes") -> "LogConfig":
        """从环境变量创建配置"""
        level = os.getenv("LOG_LEVEL", "INFO").upper()
        format_str = os.getenv("LOG_FORMAT", "console").lower()

        return cls(
            level=level,
            format=LogFormat.JSON if format_str == "json" else LogFormat.CONSOLE,
            service_name=service_name,
        )


def _shared_processors(config: LogConfig) -> list:
    processors = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
    ]
    if config.add_timestamp:
        processors.insert(0, structlog.processors.TimeStamper(fmt="iso"))
    tags = {"service": config.service_name, **config.extra_tags}

    def add_tags(_, __, event_dict):
        for key, value in tags.items():
            event_dict.setdefault(key, value)
        return event_dict

    processors.append(add_tags)
    return processors


def configure_logging(config: Optional[LogConfig] = None, service_name: str = "sticky-notes"):
    """
    配置结构化日志

    structlog 与标准库 logging 共用同一个 Handler，
    因此 domains 内部使用 logging.getLogger 的模块也会按同样的格式输出。

    Args:
        config: 日志配置，None 则从环境变量读取
        service_name: 服务名称
    """
    if config is None:
        config = LogConfig.from_env(service_name=service_name)

    log_level = getattr(logging, config.level, logging.INFO)

    processors = [structlog.stdlib.filter_by_level] + _shared_processors(config)
    # 渲染工作由标准库 logging 的 ProcessorFormatter 完成
    processors.append(structlog.stdlib.ProcessorFormatter.wrap_for_formatter)

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    if config.format == LogFormat.JSON:
        formatter = structlog.stdlib.ProcessorFormatter(
            processor=structlog.processors.JSONRenderer(ensure_ascii=False),
            foreign_pre_chain=_shared_processors(config),
        )
    else:
        formatter = structlog.stdlib.ProcessorFormatter(
            processor=structlog.dev.ConsoleRenderer(
                colors=sys.stderr.isatty(),
                exception_formatter=structlog.dev.plain_traceback,
            ),
            foreign_pre_chain=_shared_processors(config),
        )

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(console_handler)
    root_logger.setLevel(log_level)

    # 第三方库日志级别
    logging.getLogger("uvicorn").setLevel(log_level)
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)


def get_logger(name: Optional[str] = None) -> structlog.stdlib.BoundLogger:
    """
    获取结构化日志器

    Args:
        name: 日志器名称

    Returns:
        structlog BoundLogger

    使用示例:
        logger = get_logger(__name__)
        logger.info("note_created", note_id="3f2a...", title_length=12)
    """
    return structlog.get_logger(name)


def bind_request_context(request_id: str, surface_id: Optional[str] = None):
    """
    绑定请求上下文到日志

    Args:
        request_id: 请求 ID
        surface_id: 窗口会话 ID（可选）
    """
    structlog.contextvars.clear_contextvars()
    structlog.contextvars.bind_contextvars(request_id=request_id)
    if surface_id:
        structlog.contextvars.bind_contextvars(surface_id=surface_id)


def clear_request_context():
    """清除请求上下文"""
    structlog.contextvars.clear_contextvars()
