# metagdb/processing/base_processor.py
import logging
from typing import Optional

from sqlalchemy.orm import Session

from metagdb.exceptions import StructureError
from metagdb.utils.diagnostics import Diagnostics
from metagdb.utils.yaml_config import BatchConfig, YAMLConfig, get_yaml_config


class BaseProcessor:
    """
    基础处理器类，提供公共依赖：会话、配置、批量大小、阶元列表、诊断收集器

    ✅ 设计原则：
    - session 必须由外部传入，处理器只 flush，不 commit / rollback
    - 致命错误直接抛出，可恢复问题写入 diagnostics
    """

    def __init__(self, db_session: Session, config: Optional[YAMLConfig] = None,
                 batch_config: Optional[BatchConfig] = None, diagnostics: Optional[Diagnostics] = None):
        if db_session is None:
            raise ValueError("数据库会话对象必须外部输入")
        self.db_session = db_session
        self.config = config or get_yaml_config()
        self.batch_config = batch_config or self.config.get_batch_config()
        self.ranks = self.config.get_ranks()
        self.control_barcode = self.config.get_control_barcode()
        self.logger = logging.getLogger(self.__class__.__module__)
        self.diagnostics = diagnostics if diagnostics is not None else Diagnostics(self.logger)

    @staticmethod
    def check_id_change(id_change) -> int:
        """校验变更ID"""
        if isinstance(id_change, bool) or not isinstance(id_change, int) or id_change < 1:
            raise StructureError(f"Invalid value for id_change ->{id_change}<-")
        return id_change
