# metagdb/processing/classification_processor.py
from typing import Any, Dict, Set, Tuple

from metagdb.exceptions import StructureError
from metagdb.models.records import ClassificationKey, ClassificationKeys, TaxonomyKeys, TaxonomyLink
from metagdb.processing.base_processor import BaseProcessor
from metagdb.repositories.classification_repository import ClassificationRepository


class ClassificationProcessor(BaseProcessor):
    """由 taxonomy 外键结构生成 (序列, 分类程序, 数据库) 记录"""

    def __init__(self, db_session, **kwargs):
        super().__init__(db_session, **kwargs)
        self.classification_repo = ClassificationRepository(db_session, self.batch_config)

    def insert_classification(self, taxonomy_keys: TaxonomyKeys, id_change: int,
                              is_new: bool = False) -> Tuple[ClassificationKeys, bool]:
        """
        导入 classification

        Returns:
            ({id_classification: {id_taxonomy, ...}}, is_new)
        """
        self.check_id_change(id_change)
        if not isinstance(taxonomy_keys, dict) or not taxonomy_keys:
            raise StructureError("No keys or not a reference")

        pending: Dict[ClassificationKey, Set[int]] = {}
        asserted_ranks: Dict[ClassificationKey, Set[str]] = {}
        for key, link in taxonomy_keys.items():
            if not isinstance(link, TaxonomyLink):
                raise StructureError(f"Invalid keys hash for ->{key}<-")
            if not link.sequences:
                continue
            if link.id_taxonomy is None:
                raise StructureError(f"No id_taxonomy for key ->{key}<-")

            for id_sequence, source in link.sequences.items():
                classification_key = ClassificationKey(id_sequence, source.program, source.database)
                ranks = asserted_ranks.setdefault(classification_key, set())
                if key.rank in ranks:
                    raise StructureError(
                        f"Rank ->{key.rank}<- asserted more than once for sequence ->{id_sequence}<-"
                    )
                ranks.add(key.rank)
                pending.setdefault(classification_key, set()).add(link.id_taxonomy)

        if not pending:
            return {}, is_new

        rows: Dict[ClassificationKey, Dict[str, Any]] = {
            key: self.classification_repo.build_row(key, id_change) for key in pending
        }
        ids, is_new = self.classification_repo.insert_missing(rows, is_new)

        classification_keys: ClassificationKeys = {ids[key]: taxonomies for key, taxonomies in pending.items()}
        self.logger.info(f"Classification import finished: {len(classification_keys)} classifications")
        return classification_keys, is_new
