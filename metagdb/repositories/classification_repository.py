# metagdb/repositories/classification_repository.py
from typing import Any, Dict, List, Type

from metagdb.models.models import Classification
from metagdb.models.records import ClassificationKey
from metagdb.repositories.base_repository import BaseRepository


class ClassificationRepository(BaseRepository[Classification]):
    """Classification表专用Repository，自然键为 (id_sequence, program, database)"""

    def _get_model(self) -> Type[Classification]:
        return Classification

    def get_key_fields(self) -> List[str]:
        return list(ClassificationKey._fields)

    def make_key(self, record: Classification) -> ClassificationKey:
        return ClassificationKey(record.id_sequence, record.program, record.database)

    @staticmethod
    def build_row(key: ClassificationKey, id_change: int) -> Dict[str, Any]:
        return {**key._asdict(), "id_change": id_change}
