# metagdb/processing/taxonomy_processor.py
from pathlib import Path
from typing import Any, Mapping, Optional, Tuple, Union

from metagdb.exceptions import StructureError
from metagdb.models.records import (
    ProgramDatabase, SampleMeta, SequenceKeys, TaxonomyKey, TaxonomyKeys, TaxonomyLink, build_sample_map,
)
from metagdb.processing.base_processor import BaseProcessor
from metagdb.processing.read_locator import ReadLocator
from metagdb.processing.reconciler import match_samples, reconcile_reads
from metagdb.processing.sentinel_policy import resolve_lineage
from metagdb.repositories.taxonomy_repository import TaxonomyRepository


class TaxonomyProcessor(BaseProcessor):
    """
    taxonomy 导入：定位分类器文件 → 解析谱系 → 与已导入的 read 对账 → 填充哨兵 → 去重插入
    返回的 taxonomy 外键结构供 classification 与 taxclass 阶段使用
    """

    def __init__(self, db_session, **kwargs):
        super().__init__(db_session, **kwargs)
        self.taxonomy_repo = TaxonomyRepository(db_session, self.batch_config)

    @staticmethod
    def _check_id_sequence(id_sequence: Any) -> int:
        if isinstance(id_sequence, bool) or not isinstance(id_sequence, int) or id_sequence < 1:
            raise StructureError(f"Value for ->id_sequence<- missing or invalid ->{id_sequence}<-")
        return id_sequence

    def collect_links(self, sequence_keys: SequenceKeys, samples: Mapping[int, SampleMeta],
                      base_path: Union[str, Path], locator: Optional[ReadLocator] = None) -> TaxonomyKeys:
        """
        为每个 (name, rank) 收集关联的序列及其分类程序

        Returns:
            {TaxonomyKey: TaxonomyLink}，此时 id_taxonomy 尚未分配
        """
        pattern_samples = match_samples(sequence_keys, samples, self.control_barcode)
        locator = locator or ReadLocator(base_path, self.config, self.diagnostics, self.ranks)
        located = locator.locate(pattern_samples)

        links: TaxonomyKeys = {}
        for dir_pattern, metas in pattern_samples.items():
            for meta in metas:
                read_ids = sequence_keys[dir_pattern][meta.id_sample]
                lineages = located[dir_pattern][meta.id_sample]
                reconcile_reads(dir_pattern, meta.id_sample, lineages, read_ids)
                if not lineages and read_ids:
                    self.logger.info(
                        f"{len(read_ids)} read(s) of sample {meta.id_sample} in ->{dir_pattern}<- recorded as FILTERED"
                    )

                source = ProgramDatabase(meta.program, meta.database)
                for read_id, id_sequence in read_ids.items():
                    id_sequence = self._check_id_sequence(id_sequence)
                    for rank, taxon in resolve_lineage(read_id, lineages, self.ranks).items():
                        link = links.setdefault(TaxonomyKey.of(taxon, rank), TaxonomyLink())
                        link.sequences[id_sequence] = source
        return links

    def insert_taxonomy(self, sequence_keys: SequenceKeys, samples: Mapping[Any, Any],
                        base_path: Union[str, Path], id_change: int, is_new: bool = False,
                        locator: Optional[ReadLocator] = None) -> Tuple[TaxonomyKeys, bool]:
        """
        导入 taxonomy

        Args:
            sequence_keys: {dir_pattern: {id_sample: {read_id: id_sequence}}}
            samples: {id_sample: SampleMeta 或上游字典}
            base_path: 分类器输出根目录
            id_change: 本次导入的变更ID
            is_new: 运行中累积的“是否有新数据”标志
            locator: 可选，自定义的文件定位器

        Returns:
            ({TaxonomyKey: TaxonomyLink}, is_new)
        """
        self.check_id_change(id_change)
        sample_map = build_sample_map(samples)
        links = self.collect_links(sequence_keys, sample_map, base_path, locator)
        if not links:
            return links, is_new

        rows = {key: self.taxonomy_repo.build_row(key, id_change) for key in links}
        ids, is_new = self.taxonomy_repo.insert_missing(rows, is_new)
        for key, link in links.items():
            link.id_taxonomy = ids[key]

        self.logger.info(f"Taxonomy import finished: {len(links)} distinct (name, rank) pairs")
        return links, is_new
