# metagdb/repositories/sequence_repository.py
from typing import Any, Dict, List, Type

from metagdb.models.models import Sequence
from metagdb.models.records import SequenceKey
from metagdb.repositories.base_repository import BaseRepository


class SequenceRepository(BaseRepository[Sequence]):
    """Sequence表专用Repository，自然键为 (id_sample, flowcellid, runid, barcode, readid)"""

    def _get_model(self) -> Type[Sequence]:
        return Sequence

    def get_key_fields(self) -> List[str]:
        return list(SequenceKey._fields)

    def make_key(self, record: Sequence) -> SequenceKey:
        return SequenceKey(record.id_sample, record.flowcellid, record.runid, record.barcode, record.readid)

    @staticmethod
    def build_row(key: SequenceKey, read: Dict[str, Any], id_change: int) -> Dict[str, Any]:
        """
        将解析后的 FASTQ 记录转换为 Sequence 字段字典

        Args:
            key: 自然键
            read: fastq_parser 返回的单条记录（_seq_、_qual_、seqerr 及元数据）
            id_change: 本次导入的变更ID

        Returns:
            Sequence 字段字典
        """
        return {
            **key._asdict(),
            "callermodel": read.get("basecall_model_version_id"),
            "nucs": read["_seq_"],
            "quality": read["_qual_"],
            "seqerr": read["seqerr"],
            "seqlen": len(read["_seq_"]),
            "id_change": id_change,
        }
