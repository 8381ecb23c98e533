"""
统一异常体系

提供业务层和存储层的统一错误处理，包括:
- 业务异常基类 (ApplicationError)
- 常用业务异常类型
- 笔记存储相关异常
- HTTP 状态码映射
"""

from enum import Enum
from typing import Any, Dict, Optional, List
from dataclasses import dataclass


class ErrorCategory(str, Enum):
    """错误分类"""
    VALIDATION = "validation"      # 参数验证错误
    NOT_FOUND = "not_found"        # 资源不存在
    CONFLICT = "conflict"          # 资源冲突
    STORAGE = "storage"            # 持久化失败（可重试）
    INTERNAL = "internal"          # 内部错误


@dataclass
class ApplicationError(Exception):
    """
    应用层异常基类

    所有业务相关的异常都应继承此类。
    提供统一的错误结构，由调用方（HTTP 路由、窗口会话）决定如何展示。

    使用示例:
        raise NoteNotFoundError("3f2a...")
        raise ValidationError("参数无效", errors=[{"field": "title", "message": "必须是字符串"}])
    """
    code: str                                    # 错误码 (如 "NOT_FOUND", "VALIDATION_ERROR")
    message: str                                 # 用户可读的错误信息
    category: ErrorCategory = ErrorCategory.INTERNAL
    details: Optional[Dict[str, Any]] = None    # 附加详情
    cause: Optional[Exception] = None           # 原始异常

    def __post_init__(self):
        super().__init__(self.message)

    def __str__(self) -> str:
        return f"[{self.code}] {self.message}"

    @property
    def http_status_code(self) -> int:
        """映射到 HTTP 状态码"""
        mapping = {
            ErrorCategory.VALIDATION: 400,
            ErrorCategory.NOT_FOUND: 404,
            ErrorCategory.CONFLICT: 409,
            ErrorCategory.STORAGE: 503,
            ErrorCategory.INTERNAL: 500,
        }
        return mapping.get(self.category, 500)

    def to_dict(self) -> Dict[str, Any]:
        """转换为字典格式（用于 API 响应）"""
        result = {
            "code": self.code,
            "message": self.message,
            "category": self.category.value,
        }
        if self.details:
            result["details"] = self.details
        return result


# ==================== 常用业务异常 ====================

class NotFoundError(ApplicationError):
    """资源不存在"""
    def __init__(
        self,
        resource_type: str,
        resource_id: Any,
        details: Optional[Dict] = None
    ):
        super().__init__(
            code="NOT_FOUND",
            message=f"{resource_type}不存在: {resource_id}",
            category=ErrorCategory.NOT_FOUND,
            details=details or {"resource_type": resource_type, "resource_id": str(resource_id)}
        )
        self.resource_type = resource_type
        self.resource_id = resource_id


class ValidationError(ApplicationError):
    """参数验证错误"""
    def __init__(
        self,
        message: str,
        errors: Optional[List[Dict[str, Any]]] = None,
        field: Optional[str] = None
    ):
        details = {}
        if errors:
            details["validation_errors"] = errors
        if field:
            details["field"] = field

        super().__init__(
            code="VALIDATION_ERROR",
            message=message,
            category=ErrorCategory.VALIDATION,
            details=details or None
        )
        self.errors = errors
        self.field = field


class ConflictError(ApplicationError):
    """资源冲突"""
    def __init__(
        self,
        code: str,
        message: str,
        details: Optional[Dict] = None
    ):
        super().__init__(
            code=code,
            message=message,
            category=ErrorCategory.CONFLICT,
            details=details
        )


# ==================== 笔记相关异常 ====================

class NoteNotFoundError(NotFoundError):
    """笔记不存在（不在活动集合或回收站中）"""
    def __init__(self, note_id: str, area: str = "active"):
        super().__init__("笔记", note_id, details={"note_id": str(note_id), "area": area})
        self.note_id = note_id
        self.area = area


class PersistenceError(ApplicationError):
    """
    持久化失败

    写入临时文件或原子替换失败。内存状态保持在最后一次成功写入的快照，
    由调用方决定是否重试。
    """
    def __init__(self, path: str, message: str, cause: Optional[Exception] = None):
        super().__init__(
            code="PERSISTENCE_FAILURE",
            message=f"写入失败 {path}: {message}",
            category=ErrorCategory.STORAGE,
            details={"path": str(path)},
            cause=cause
        )
        self.path = path


class CorruptStoreError(ApplicationError):
    """笔记文件无法解析，且无法保留到恢复目录"""
    def __init__(self, path: str, message: str, cause: Optional[Exception] = None):
        super().__init__(
            code="CORRUPT_STORE",
            message=f"笔记文件损坏 {path}: {message}",
            category=ErrorCategory.INTERNAL,
            details={"path": str(path)},
            cause=cause
        )
        self.path = path


class StorageUnavailableError(ApplicationError):
    """存储目录不可用（无法创建或读取），属于不可恢复的底层故障"""
    def __init__(self, path: str, message: str, cause: Optional[Exception] = None):
        super().__init__(
            code="STORAGE_UNAVAILABLE",
            message=f"存储目录不可用 {path}: {message}",
            category=ErrorCategory.INTERNAL,
            details={"path": str(path)},
            cause=cause
        )
        self.path = path


class StoreClosedError(ConflictError):
    """存储根目录已切换，旧的 Store 已关闭"""
    def __init__(self, root: str):
        super().__init__(
            code="STORE_CLOSED",
            message=f"存储目录已切换，请重新加载: {root}",
            details={"root": str(root)}
        )
        self.root = root


class StoreLockedError(ConflictError):
    """存储根目录被另一个进程占用"""
    def __init__(self, root: str):
        super().__init__(
            code="STORE_LOCKED",
            message=f"存储目录正被其他进程使用: {root}",
            details={"root": str(root)}
        )
        self.root = root


# ==================== 导出 ====================

__all__ = [
    # 基类
    "ErrorCategory",
    "ApplicationError",
    # 通用异常
    "NotFoundError",
    "ValidationError",
    "ConflictError",
    # 笔记异常
    "NoteNotFoundError",
    "PersistenceError",
    "CorruptStoreError",
    "StorageUnavailableError",
    "StoreClosedError",
    "StoreLockedError",
]
