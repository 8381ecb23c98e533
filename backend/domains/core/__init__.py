"""
Core - 通用应用基础设施

提供与具体领域无关的基础设施组件:
- 统一异常体系
- 服务生命周期管理
- 结构化日志
- 文件原子写入与进程锁
"""

from .exceptions import (
    ApplicationError,
    ConflictError,
    CorruptStoreError,
    ErrorCategory,
    NoteNotFoundError,
    NotFoundError,
    PersistenceError,
    StorageUnavailableError,
    StoreClosedError,
    StoreLockedError,
    ValidationError,
)
from .lifecycle import (
    ServiceDefinition,
    ServiceRegistry,
    get_service_registry,
    register_core_services,
    reset_service_registry,
)

__all__ = [
    # Exceptions
    "ErrorCategory",
    "ApplicationError",
    "NotFoundError",
    "ValidationError",
    "ConflictError",
    "NoteNotFoundError",
    "PersistenceError",
    "CorruptStoreError",
    "StorageUnavailableError",
    "StoreClosedError",
    "StoreLockedError",
    # Lifecycle
    "ServiceRegistry",
    "ServiceDefinition",
    "get_service_registry",
    "reset_service_registry",
    "register_core_services",
]
