"""分类导入服务
负责组合各处理器，按 sequence → taxonomy → classification → taxclass 的顺序完成一次导入
"""

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Mapping, Optional, Union

from sqlalchemy.orm import Session

from metagdb.models.database import get_session
from metagdb.models.records import ClassificationKeys, SequenceKeys, TaxonomyKeys, build_sample_map
from metagdb.processing.classification_processor import ClassificationProcessor
from metagdb.processing.sequence_processor import SequenceProcessor
from metagdb.processing.taxclass_processor import TaxclassProcessor
from metagdb.processing.taxonomy_processor import TaxonomyProcessor
from metagdb.repositories.change_repository import ChangeRepository
from metagdb.utils.diagnostics import Diagnostics
from metagdb.utils.logging_config import log_import_result
from metagdb.utils.yaml_config import BatchConfig, get_yaml_config

logger = logging.getLogger(__name__)


@dataclass
class ImportResult:
    """一次导入调用的结果：外键结构、is_new 标志以及可恢复问题列表"""

    is_new: bool
    id_change: int
    sequence_keys: SequenceKeys = field(default_factory=dict)
    taxonomy_keys: TaxonomyKeys = field(default_factory=dict)
    classification_keys: ClassificationKeys = field(default_factory=dict)
    taxclass_count: int = 0
    diagnostics: Diagnostics = field(default_factory=Diagnostics)


class ImportService:
    """分类导入服务；不管理事务，由调用方的 session 上下文提交或回滚"""

    def __init__(self, config_file: Optional[str] = None, batch_config: Optional[BatchConfig] = None):
        """
        初始化导入服务

        Args:
            config_file: 配置文件路径
            batch_config: 可选，覆盖配置文件中的 import.max_rows
        """
        self.config = get_yaml_config(config_file)
        self.batch_config = batch_config or self.config.get_batch_config()

    def import_classifications(self, db_session: Session, samples: Mapping[Any, Any],
                               base_path: Union[str, Path], sequence_keys: Optional[SequenceKeys] = None,
                               is_new: bool = False, username: Optional[str] = None) -> ImportResult:
        """
        在调用方的事务中执行一次完整导入

        Args:
            db_session: 数据库会话（必须由外部传入）
            samples: {id_sample: SampleMeta 或上游字典}
            base_path: 测序数据与分类器输出的根目录
            sequence_keys: 已有的序列外键结构；为 None 时先从 FASTQ 导入序列
            is_new: 运行中累积的“是否有新数据”标志
            username: 记录到 change 表的用户名

        Returns:
            ImportResult
        """
        diagnostics = Diagnostics(logger)
        options = dict(config=self.config, batch_config=self.batch_config, diagnostics=diagnostics)
        sample_map = build_sample_map(samples)

        id_change = ChangeRepository(db_session).create_change(username)
        result = ImportResult(is_new=is_new, id_change=id_change, diagnostics=diagnostics)

        # 1. sequence
        if sequence_keys is None:
            sequence_keys, result.is_new = SequenceProcessor(db_session, **options).insert_sequences(
                sample_map, base_path, id_change, result.is_new
            )
            if not sequence_keys:
                diagnostics.warning("No sequences found for the given samples, nothing to classify")
                return result
        result.sequence_keys = sequence_keys

        # 2. taxonomy
        result.taxonomy_keys, result.is_new = TaxonomyProcessor(db_session, **options).insert_taxonomy(
            sequence_keys, sample_map, base_path, id_change, result.is_new
        )
        if not result.taxonomy_keys:
            return result

        # 3. classification
        result.classification_keys, result.is_new = ClassificationProcessor(db_session, **options).insert_classification(
            result.taxonomy_keys, id_change, result.is_new
        )
        if not result.classification_keys:
            return result

        # 4. taxclass
        result.taxclass_count, result.is_new = TaxclassProcessor(db_session, **options).insert_taxclass(
            result.classification_keys, id_change, result.is_new
        )

        logger.info(
            f"Import {id_change} finished: {len(result.taxonomy_keys)} taxa, "
            f"{len(result.classification_keys)} classifications, {result.taxclass_count} links, "
            f"new data: {result.is_new}, warnings: {len(diagnostics.warnings)}"
        )
        return result


def run_taxonomy_import(samples: Mapping[Any, Any], base_path: Union[str, Path],
                        config_file: Optional[str] = None, username: Optional[str] = None,
                        sequence_keys: Optional[SequenceKeys] = None, is_new: bool = False) -> ImportResult:
    """
    分类导入流程入口函数，供编排脚本调用
    整个导入在一个事务中完成：有新数据则提交；没有新数据时回滚，连同本次预留的 change 行一起丢弃；
    任何异常都会回滚并继续向上抛出

    Returns:
        ImportResult；is_new 为 False 时 id_change 指向已回滚的变更记录
    """
    logger.info(f"开始执行分类导入流程：{base_path}")
    service = ImportService(config_file)
    try:
        with get_session(config_file) as db_session:
            result = service.import_classifications(db_session, samples, base_path, sequence_keys=sequence_keys,
                                                    is_new=is_new, username=username)
            if not result.is_new:
                logger.info(f"No new data, change ->{result.id_change}<- discarded")
                db_session.rollback()
    except Exception as e:
        log_import_result(str(base_path), False, str(e), logger)
        raise

    log_import_result(str(base_path), True, f"id_change={result.id_change}, is_new={result.is_new}", logger)
    return result
