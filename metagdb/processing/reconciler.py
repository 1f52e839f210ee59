# metagdb/processing/reconciler.py
"""序列外键结构、样本元数据与分类文件中的 read ID 之间的一致性检查"""

import logging
from typing import Dict, Iterable, List, Mapping

from metagdb.exceptions import ReconciliationError, StructureError
from metagdb.models.records import LineageMap, SampleMeta, SequenceKeys

logger = logging.getLogger(__name__)


def match_samples(sequence_keys: SequenceKeys, samples: Mapping[int, SampleMeta],
                  control_barcode: str = "bar99") -> Dict[str, List[SampleMeta]]:
    """
    将序列外键结构中的样本与样本元数据对应起来

    :param sequence_keys: {dir_pattern: {id_sample: {read_id: id_sequence}}}
    :param samples: {id_sample: SampleMeta}
    :return: {dir_pattern: [SampleMeta, ...]}
    :raises StructureError: 结构为空或不是映射
    :raises ReconciliationError: 序列结构中的样本没有元数据，或元数据中的样本在其目录模式下缺失
    """
    if not isinstance(sequence_keys, Mapping) or not sequence_keys:
        raise StructureError("No keys or not a reference")
    if not isinstance(samples, Mapping) or not samples:
        raise StructureError("No keys or not a reference")

    matched: Dict[str, List[SampleMeta]] = {}
    for dir_pattern, by_sample in sequence_keys.items():
        if not isinstance(by_sample, Mapping) or not by_sample:
            raise StructureError(f"No samples for directory pattern ->{dir_pattern}<-")
        for id_sample in by_sample:
            meta = samples.get(id_sample)
            if meta is None or meta.effective_pattern(control_barcode) != dir_pattern:
                raise ReconciliationError(
                    f"Sample and sequence objects not matching: sample ->{id_sample}<- "
                    f"under directory pattern ->{dir_pattern}<-"
                )
            matched.setdefault(dir_pattern, []).append(meta)

    for meta in samples.values():
        dir_pattern = meta.effective_pattern(control_barcode)
        if dir_pattern in sequence_keys and meta.id_sample not in sequence_keys[dir_pattern]:
            raise ReconciliationError(
                f"Sample and sequence objects not matching: sample ->{meta.id_sample}<- "
                f"missing under directory pattern ->{dir_pattern}<-"
            )
    return matched


def reconcile_reads(dir_pattern: str, id_sample: int, lineages: LineageMap, read_ids: Iterable[str]) -> None:
    """
    分类文件中的 read ID 集合必须与该样本已导入的 read ID 集合完全一致

    没有任何分类记录（lineages 为空）时不做比较，该样本的 read 全部记为 FILTERED。
    """
    if not lineages:
        return

    known = set(read_ids)
    classified = set(lineages)
    if known == classified:
        return

    missing = known - classified
    unknown = classified - known
    logger.error(
        f"Read ID mismatch for ->{dir_pattern}<- / sample {id_sample}: "
        f"{len(unknown)} only in taxonomy file, {len(missing)} only in FASTQ"
    )
    raise ReconciliationError(
        f"->{len(missing) + len(unknown)}<- read ID(s) do not match between taxonomy file and FASTQ "
        f"for directory pattern ->{dir_pattern}<- and sample ->{id_sample}<-",
        suggestion=f"Examples: {', '.join(sorted(missing | unknown)[:5])}",
    )
