"""
导入流程的异常类型

区分“调用方式错误”（配置、参数）与“数据错误”（解析、对账、结构），
便于调用方判断是修改调用还是修改输入数据。
所有异常同时继承 ValueError，兼容捕获 ValueError 的旧调用方。
"""

from typing import Optional


class MetagDBError(ValueError):
    """所有 metagdb 异常的基类"""

    def __init__(self, message: str, suggestion: Optional[str] = None):
        self.message = message
        self.suggestion = suggestion
        super().__init__(self.full_message)

    @property
    def full_message(self) -> str:
        if self.suggestion:
            return f"ERROR: {self.message}\n\nSuggestion: {self.suggestion}"
        return f"ERROR: {self.message}"


class ConfigurationError(MetagDBError):
    """调用/配置错误：批量大小非法、阶元列表错误、分类器未知或缺失、目录模式冲突等"""


class ParseError(MetagDBError):
    """分类器输出或 FASTQ 内容格式错误"""


class ReconciliationError(MetagDBError):
    """样本对象与序列对象、或 read ID 集合之间不一致"""


class StructureError(MetagDBError):
    """调用方传入的外键结构为空或缺少必需的嵌套字段"""


class FileLocationError(MetagDBError):
    """文件定位失败：目录模式过于宽泛、文件重名、文件过大、压缩格式不支持"""
