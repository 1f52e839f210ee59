# metagdb/processing/taxclass_processor.py
from typing import Tuple

from metagdb.exceptions import StructureError
from metagdb.models.records import ClassificationKeys, TaxclassKey
from metagdb.processing.base_processor import BaseProcessor
from metagdb.repositories.taxclass_repository import TaxclassRepository


class TaxclassProcessor(BaseProcessor):
    """classification 与 taxonomy 的关联记录；不返回外键"""

    def __init__(self, db_session, **kwargs):
        super().__init__(db_session, **kwargs)
        self.taxclass_repo = TaxclassRepository(db_session, self.batch_config)

    def insert_taxclass(self, classification_keys: ClassificationKeys, id_change: int,
                        is_new: bool = False) -> Tuple[int, bool]:
        """
        导入 taxclass

        :param classification_keys: {id_classification: {id_taxonomy, ...}}
        :return: (关联记录数, is_new)；有新关联行写入时 is_new 为 True
        """
        self.check_id_change(id_change)
        if not isinstance(classification_keys, dict) or not classification_keys:
            raise StructureError("No keys or not a reference")

        rows = {}
        for id_classification, taxonomies in classification_keys.items():
            if not taxonomies:
                raise StructureError(f"No id_taxonomy for id_classification ->{id_classification}<-")
            for id_taxonomy in taxonomies:
                key = TaxclassKey(id_taxonomy, id_classification)
                rows[key] = self.taxclass_repo.build_row(key, id_change)

        _, is_new = self.taxclass_repo.insert_missing(rows, is_new)
        self.logger.info(f"Taxclass import finished: {len(rows)} links")
        return len(rows), is_new
