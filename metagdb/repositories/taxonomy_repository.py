# metagdb/repositories/taxonomy_repository.py
from typing import Any, Dict, List, Type

from metagdb.models.models import Taxonomy
from metagdb.models.records import TaxonomyKey
from metagdb.repositories.base_repository import BaseRepository


class TaxonomyRepository(BaseRepository[Taxonomy]):
    """
    Taxonomy表专用Repository，自然键为 (name, rank)
    name 为 NULL 的行由 BaseRepository 以 IS NULL 条件查询，保证每个阶元只有一条
    """

    def _get_model(self) -> Type[Taxonomy]:
        return Taxonomy

    def get_key_fields(self) -> List[str]:
        return list(TaxonomyKey._fields)

    def make_key(self, record: Taxonomy) -> TaxonomyKey:
        return TaxonomyKey(record.name, record.rank)

    @staticmethod
    def build_row(key: TaxonomyKey, id_change: int) -> Dict[str, Any]:
        return {"name": key.name, "rank": key.rank, "id_change": id_change}
