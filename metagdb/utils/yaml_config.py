# metagdb/utils/yaml_config.py
"""
YAML配置文件处理工具
提供统一接口加载和解析YAML格式的配置文件，为每个配置模块提供专用接口。
支持按节点路径查询配置项，自动处理配置文件不存在、节点缺失等异常情况。
"""

import os
import yaml
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Any, Optional, List
import logging

from metagdb.exceptions import ConfigurationError

logger = logging.getLogger(__name__)

# 环境变量优先于默认路径
CONFIG_ENV_VAR = "METAGDB_CONFIG"

DEFAULT_RANKS = [
    "domain", "phylum", "class", "subclass", "order",
    "suborder", "family", "genus", "species", "strain",
]
DEFAULT_MAX_ROWS = 80
DEFAULT_CONTROL_BARCODE = "bar99"
DEFAULT_MAX_FILE_SIZE = 3 * 1024 ** 3
DEFAULT_FASTQ_PATTERN = r"\.fastq.*"


@dataclass(frozen=True)
class BatchConfig:
    """批量查询/插入的配置：一次语句中最多包含的记录数（IN 子句上限）"""

    max_in_clause_size: int = DEFAULT_MAX_ROWS

    def __post_init__(self):
        value = self.max_in_clause_size
        # bool 是 int 的子类，需要单独排除
        if isinstance(value, bool) or not isinstance(value, int) or value < 1:
            raise ConfigurationError(
                f"Invalid value for maxRows ->{value}<-",
                suggestion="import.max_rows must be a positive integer",
            )

    @classmethod
    def from_value(cls, value: Any) -> "BatchConfig":
        """从配置值（可能是字符串）构建 BatchConfig"""
        if isinstance(value, str) and value.strip().isdigit():
            value = int(value.strip())
        return cls(max_in_clause_size=value)


class YAMLConfig:
    """YAML配置文件处理器"""

    def __init__(self, config_file: Optional[str] = None):
        """
        初始化配置处理器

        Args:
            config_file: YAML配置文件路径，默认使用环境变量 METAGDB_CONFIG
                         或项目根目录下的 config/config.yaml
        """
        self.config_path = config_file or os.getenv(CONFIG_ENV_VAR) or self._get_default_config_path()
        self.config_data = self._load_config()
        self._validate_core_config()

    def _get_default_config_path(self) -> str:
        """获取默认配置文件路径（config/config.yaml）"""
        current_dir = Path(__file__).absolute().parent.parent.parent  # metagdb/utils/ -> metagdb/ -> 项目根目录
        default_path = current_dir / "config" / "config.yaml"
        return str(default_path)

    def _load_config(self) -> Dict[str, Any]:
        """加载并解析YAML配置文件"""
        config_path = Path(self.config_path).absolute()

        if not config_path.exists():
            raise FileNotFoundError(f"配置文件不存在：{config_path}")

        if not config_path.is_file():
            raise IsADirectoryError(f"配置路径不是文件：{config_path}")

        try:
            with open(config_path, 'r', encoding='utf-8') as f:
                config_data = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ConfigurationError(f"YAML配置文件解析错误：{str(e)}（文件：{config_path}）") from e

        logger.info(f"成功加载YAML配置文件：{config_path}")
        return config_data

    def _validate_core_config(self) -> None:
        """验证核心配置节点"""
        required_sections = [
            "database",
            "logging",
            "import",
        ]
        missing = [sec for sec in required_sections if sec not in self.config_data]
        if missing:
            raise ConfigurationError(f"配置文件缺少必填节点：{missing}（文件：{self.config_path}）")

    def get(self, path: str, default: Any = None, required: bool = False) -> Any:
        """
        按路径获取配置项

        Args:
            path: 配置节点路径，使用点分隔（如"import.max_rows"）
            default: 当配置项不存在时返回的默认值
            required: 是否为必填项，若为True且配置项不存在则抛出异常

        Returns:
            配置项的值

        Examples:
            >>> config.get("import.max_rows")
            80
            >>> config.get("import.classifiers.metag.format")
            'metag'
        """
        keys = path.split('.')
        current = self.config_data

        for key in keys:
            if not isinstance(current, dict) or key not in current:
                if required:
                    raise KeyError(f"配置文件中缺少必填节点：{path}（文件：{self.config_path}）")
                return default
            current = current[key]

        return current

    # 专用接口：为每个配置模块提供独立的方法
    def get_database_config(self) -> Dict[str, Any]:
        """获取数据库配置（database节点）"""
        return self.get("database", required=True)

    def get_import_config(self) -> Dict[str, Any]:
        """获取导入配置（import节点）"""
        return self.get("import", required=True)

    def get_ranks(self) -> List[str]:
        """获取分类阶元列表（默认 domain ... strain 共10级）"""
        ranks = self.get("import.ranks", default=None) or list(DEFAULT_RANKS)
        return validate_ranks(ranks)

    def get_batch_config(self) -> BatchConfig:
        """获取批量大小配置"""
        return BatchConfig.from_value(self.get("import.max_rows", default=DEFAULT_MAX_ROWS))

    def get_control_barcode(self) -> str:
        """对照样本使用的保留 barcode"""
        return self.get("import.control_barcode", default=DEFAULT_CONTROL_BARCODE)

    def get_max_file_size(self) -> int:
        return int(self.get("import.max_file_size", default=DEFAULT_MAX_FILE_SIZE))

    def get_fastq_pattern(self) -> str:
        """FASTQ 文件名正则"""
        return self.get("import.fastq_pattern", default=DEFAULT_FASTQ_PATTERN)

    def get_classifier_config(self, program: Optional[str] = None) -> Dict[str, Any]:
        """
        获取分类器配置（import.classifiers节点）

        Args:
            program: 可选，分类程序名（大小写不敏感，按子串匹配，如 "MetaG v1" 匹配 "metag"）
        """
        classifiers = self.get("import.classifiers", default=None) or {}
        if program is None:
            return classifiers
        for name, settings in classifiers.items():
            if name.lower() in program.lower():
                return {"name": name, **settings}
        raise ConfigurationError(
            f"Unknown classifier ->{program}<-",
            suggestion=f"Supported classifiers: {', '.join(sorted(classifiers)) or 'none configured'}",
        )

    def get_log_config(self) -> Dict[str, Any]:
        """获取日志配置（logging节点）"""
        return {
            "log_dir": self.get("logging.log_dir", default="./logs/"),
            "log_level": self.get("logging.log_level", default="INFO"),
            "max_bytes": self.get("logging.max_bytes", default=10485760),
            "backup_count": self.get("logging.backup_count", default=5)
        }

    def __str__(self) -> str:
        return f"YAMLConfig(file={self.config_path})"


def validate_ranks(ranks: Any) -> List[str]:
    """校验阶元列表：非空、均为非空字符串、不重复"""
    if not isinstance(ranks, (list, tuple)) or not ranks:
        raise ConfigurationError("Ranks empty or not a list")
    seen = set()
    for rank in ranks:
        if not isinstance(rank, str) or not rank:
            raise ConfigurationError(f"Invalid rank ->{rank}<- in rank list")
        if rank in seen:
            raise ConfigurationError(f"->{rank}<- provided more than once in given rank list")
        seen.add(rank)
    return list(ranks)


# 单例模式：全局共享一个配置实例
_config_instance: Optional[YAMLConfig] = None


def get_yaml_config(config_file: Optional[str] = None) -> YAMLConfig:
    """
    获取YAML配置实例（单例模式）

    Args:
        config_file: 配置文件路径，首次调用时有效

    Returns:
        YAMLConfig实例
    """
    global _config_instance
    if _config_instance is None:
        _config_instance = YAMLConfig(config_file)
    return _config_instance


def reset_yaml_config() -> None:
    """清除单例（测试或切换配置文件时使用）"""
    global _config_instance
    _config_instance = None
