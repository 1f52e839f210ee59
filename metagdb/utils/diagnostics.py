"""可恢复问题的收集器

致命错误直接抛出异常；可恢复的问题（文件缺失、内容为空等）写入日志，
同时追加到 Diagnostics 中随导入结果一起返回给调用方。
"""
import logging
from dataclasses import dataclass, field
from typing import Dict, Any, List, Optional


@dataclass(frozen=True)
class Diagnostic:
    level: str
    message: str
    context: Dict[str, Any] = field(default_factory=dict)


class Diagnostics:
    """按顺序记录导入过程中的警告信息"""

    def __init__(self, logger: Optional[logging.Logger] = None):
        self.entries: List[Diagnostic] = []
        self.logger = logger or logging.getLogger(__name__)

    def warning(self, message: str, **context: Any) -> None:
        self.entries.append(Diagnostic("WARNING", message, dict(context)))
        self.logger.warning(message)

    @property
    def warnings(self) -> List[Diagnostic]:
        return [entry for entry in self.entries if entry.level == "WARNING"]

    def messages(self) -> List[str]:
        return [entry.message for entry in self.entries]

    def __len__(self) -> int:
        return len(self.entries)

    def __iter__(self):
        return iter(self.entries)
