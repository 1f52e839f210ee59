# metagdb/repositories/base_repository.py
from abc import ABC, abstractmethod
from typing import Generic, TypeVar, Optional, List, Dict, Any, Type, Tuple, Iterable, Iterator, Hashable
from sqlalchemy.orm import Session
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy import or_, and_
import logging

from metagdb.exceptions import StructureError
from metagdb.utils.yaml_config import BatchConfig

# 泛型：绑定具体的 ORM 模型类
ModelType = TypeVar("ModelType")

logger = logging.getLogger(__name__)


def chunked(items: List[Any], size: int) -> Iterator[List[Any]]:
    """按固定大小切分列表"""
    for start in range(0, len(items), size):
        yield items[start:start + size]


class BaseRepository(ABC, Generic[ModelType]):
    """
    抽象基础 Repository 类
    封装“不存在则插入，存在则复用”的通用逻辑，sequence / classification /
    taxonomy / taxclass 四张表共用同一套实现

    ✅ 设计原则：
    - 不创建 session，由外部传入
    - 不调用 commit / rollback，事务由上层（Service 或 contextmanager）控制
    - 记录一经插入不再更新
    - 查询与插入按 BatchConfig.max_in_clause_size 分批
    """

    def __init__(self, db_session: Session, batch_config: Optional[BatchConfig] = None):
        """
        初始化 Repository
        :param db_session: 数据库会话（必须由上层传入）
        :param batch_config: 批量配置，默认每批 80 条
        :raises ValueError: 如果 session 为 None
        """
        if db_session is None:
            raise ValueError("db_session cannot be None. Must be provided by caller.")
        self.db_session = db_session
        self.batch_config = batch_config or BatchConfig()
        self.model: Type[ModelType] = self._get_model()

    @abstractmethod
    def _get_model(self) -> Type[ModelType]:
        """
        子类必须实现：返回对应的 ORM 模型类
        示例：return Taxonomy
        """
        raise NotImplementedError("Subclasses must implement _get_model()")

    @abstractmethod
    def get_key_fields(self) -> List[str]:
        """
        子类必须实现：返回自然键字段（顺序与 make_key 返回的 NamedTuple 一致）
        示例：return ["name", "rank"]
        """
        raise NotImplementedError("Subclasses must implement get_key_fields()")

    @abstractmethod
    def make_key(self, record: ModelType) -> Hashable:
        """子类必须实现：由 ORM 实例计算自然键"""
        raise NotImplementedError("Subclasses must implement make_key()")

    def get_identity(self, record: ModelType) -> Any:
        """返回记录的持久化标识，默认是自增主键 id"""
        return record.id

    # ========================================================================
    # ✅ 1. 查询操作
    # ========================================================================

    def _key_condition(self, key: Tuple[Any, ...]):
        """单个自然键的 WHERE 条件；NULL 值需要使用 IS NULL"""
        conditions = []
        for field_name, value in zip(self.get_key_fields(), key):
            column = getattr(self.model, field_name)
            conditions.append(column.is_(None) if value is None else column == value)
        return and_(*conditions)

    def find_existing(self, keys: Iterable[Hashable]) -> Dict[Hashable, Any]:
        """
        分批查询已存在的记录
        :param keys: 自然键集合
        :return: {自然键: 持久化标识}
        """
        found: Dict[Hashable, Any] = {}
        keys = list(dict.fromkeys(keys))
        try:
            for batch in chunked(keys, self.batch_config.max_in_clause_size):
                records = self.db_session.query(self.model).filter(
                    or_(*[self._key_condition(key) for key in batch])
                ).all()
                for record in records:
                    found[self.make_key(record)] = self.get_identity(record)
            return found
        except SQLAlchemyError as e:
            logger.error(f"Failed to query existing {self.model.__name__} records: {str(e)}", exc_info=True)
            raise

    # ========================================================================
    # ✅ 2. 去重插入（幂等导入的核心）
    # ========================================================================

    def insert_missing(self, rows: Dict[Hashable, Dict[str, Any]], is_new: bool) -> Tuple[Dict[Hashable, Any], bool]:
        """
        批量去重插入：不存在的记录插入，已存在的记录复用其标识

        :param rows: {自然键: 字段字典}，字段字典需包含自然键字段
        :param is_new: 本次运行中此前是否已经插入过新记录（只会被置为 True，不会被重置）
        :return: ({自然键: 持久化标识}, is_new)
        """
        if not isinstance(is_new, bool):
            raise StructureError(f"Invalid value for isNew ->{is_new}<-")
        if not rows:
            return {}, is_new

        keys_map: Dict[Hashable, Any] = {}
        inserted = 0
        try:
            for batch in chunked(list(rows), self.batch_config.max_in_clause_size):
                existing = self.find_existing(batch)
                keys_map.update(existing)

                new_records = [self.model(**rows[key]) for key in batch if key not in existing]
                if not new_records:
                    continue

                self.db_session.add_all(new_records)
                # flush 后才能拿到自增 ID；提交由上层负责
                self.db_session.flush()
                for record in new_records:
                    keys_map[self.make_key(record)] = self.get_identity(record)
                inserted += len(new_records)
        except SQLAlchemyError as e:
            logger.error(f"Failed to insert {self.model.__name__}: {str(e)}", exc_info=True)
            raise

        # 返回的外键数量必须与唯一记录数一致
        if len(keys_map) != len(rows) or any(key not in keys_map for key in rows):
            raise StructureError(
                f"Number of foreign keys ->{len(keys_map)}<- does not equal the number of "
                f"unique records ->{len(rows)}<- for {self.model.__tablename__}"
            )

        logger.info(f"Bulk insert {self.model.__tablename__}: {len(rows)} total, {inserted} inserted.")
        return keys_map, is_new or inserted > 0
