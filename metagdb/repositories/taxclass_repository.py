# metagdb/repositories/taxclass_repository.py
from typing import Any, Dict, List, Type

from metagdb.models.models import Taxclass
from metagdb.models.records import TaxclassKey
from metagdb.repositories.base_repository import BaseRepository


class TaxclassRepository(BaseRepository[Taxclass]):
    """Taxclass表专用Repository；联合主键即自然键，没有自增ID"""

    def _get_model(self) -> Type[Taxclass]:
        return Taxclass

    def get_key_fields(self) -> List[str]:
        return list(TaxclassKey._fields)

    def make_key(self, record: Taxclass) -> TaxclassKey:
        return TaxclassKey(record.id_taxonomy, record.id_classification)

    def get_identity(self, record: Taxclass) -> TaxclassKey:
        return self.make_key(record)

    @staticmethod
    def build_row(key: TaxclassKey, id_change: int) -> Dict[str, Any]:
        return {**key._asdict(), "id_change": id_change}
