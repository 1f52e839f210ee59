# metagdb/processing/sentinel_policy.py
"""
哨兵分类单元的分配规则

- UNMATCHED：read 有分类记录，但分类器在该阶元没有结果
- FILTERED：read 在本次运行中没有任何分类记录，所有阶元同时记为 FILTERED
"""

from typing import Sequence

from metagdb.exceptions import StructureError
from metagdb.models.records import (
    FILTERED_TAXON, UNMATCHED_TAXON, Lineage, LineageMap, TaxonKind,
)


def filtered_lineage(ranks: Sequence[str]) -> Lineage:
    return {rank: FILTERED_TAXON for rank in ranks}


def resolve_lineage(read_id: str, lineages: LineageMap, ranks: Sequence[str]) -> Lineage:
    """
    返回 read 在每个阶元上的分类结果

    :param read_id: read ID
    :param lineages: 解析得到的谱系（可能为空）
    :param ranks: 期望的阶元列表
    :return: 每个阶元恰好一个 Taxon
    """
    lineage = lineages.get(read_id)
    if lineage is None:
        return filtered_lineage(ranks)

    if any(taxon.kind is TaxonKind.FILTERED for taxon in lineage.values()):
        raise StructureError(f"Read ->{read_id}<- is partially FILTERED")

    return {rank: lineage.get(rank, UNMATCHED_TAXON) for rank in ranks}
