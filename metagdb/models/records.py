# metagdb/models/records.py
"""
导入流程中使用的类型化记录：分类单元（含哨兵值）、自然键、样本元数据与外键映射。
"""

import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Mapping, NamedTuple, Optional

from metagdb.exceptions import StructureError

UNMATCHED = "UNMATCHED"
FILTERED = "FILTERED"

CONTROL_BARCODE_RE = re.compile(r"bar[0-9]+$")


class TaxonKind(Enum):
    REAL = "real"
    UNCLASSIFIED = "unclassified"
    UNMATCHED = "unmatched"
    FILTERED = "filtered"


@dataclass(frozen=True)
class Taxon:
    """
    某一阶元上的分类结果

    - REAL：分类器给出的真实名称
    - UNCLASSIFIED：分类器在该阶元输出 "unclassified"（数据库中为 NULL）
    - UNMATCHED：分类器处理了该 read，但未能解析到该阶元
    - FILTERED：该 read 在本次运行中没有任何分类记录
    """

    kind: TaxonKind
    name: Optional[str] = None

    def __post_init__(self):
        if self.kind is TaxonKind.REAL and not self.name:
            raise ValueError("Real taxon requires a name")
        if self.kind is not TaxonKind.REAL and self.name is not None:
            raise ValueError(f"Taxon of kind {self.kind.value} cannot carry a name")

    @classmethod
    def real(cls, name: str) -> "Taxon":
        return cls(TaxonKind.REAL, name)

    @property
    def is_sentinel(self) -> bool:
        return self.kind in (TaxonKind.UNMATCHED, TaxonKind.FILTERED)

    def to_db(self) -> Optional[str]:
        """转换为 taxonomy.name 列的取值"""
        if self.kind is TaxonKind.REAL:
            return self.name
        if self.kind is TaxonKind.UNMATCHED:
            return UNMATCHED
        if self.kind is TaxonKind.FILTERED:
            return FILTERED
        return None

    def __str__(self) -> str:
        return self.name if self.kind is TaxonKind.REAL else self.kind.value.upper()


UNCLASSIFIED_TAXON = Taxon(TaxonKind.UNCLASSIFIED)
UNMATCHED_TAXON = Taxon(TaxonKind.UNMATCHED)
FILTERED_TAXON = Taxon(TaxonKind.FILTERED)

# read_id -> {rank -> Taxon}
Lineage = Dict[str, Taxon]
LineageMap = Dict[str, Lineage]

# dir_pattern -> {id_sample -> {read_id -> id_sequence}}
SequenceKeys = Dict[str, Dict[int, Dict[str, int]]]


class SequenceKey(NamedTuple):
    id_sample: int
    flowcellid: Optional[str]
    runid: Optional[str]
    barcode: Optional[str]
    readid: str


class ClassificationKey(NamedTuple):
    id_sequence: int
    program: str
    database: str


class TaxonomyKey(NamedTuple):
    name: Optional[str]
    rank: str

    @classmethod
    def of(cls, taxon: Taxon, rank: str) -> "TaxonomyKey":
        return cls(taxon.to_db(), rank)


class TaxclassKey(NamedTuple):
    id_taxonomy: int
    id_classification: int


class ProgramDatabase(NamedTuple):
    program: str
    database: str


@dataclass
class TaxonomyLink:
    """taxonomy 外键映射中的一项：关联的序列及其分类程序，以及分配到的 taxonomy 行ID"""

    sequences: Dict[int, ProgramDatabase] = field(default_factory=dict)
    id_taxonomy: Optional[int] = None


# (name, rank) -> TaxonomyLink
TaxonomyKeys = Dict[TaxonomyKey, TaxonomyLink]

# id_classification -> {id_taxonomy}
ClassificationKeys = Dict[int, set]


@dataclass(frozen=True)
class SampleMeta:
    """上游样本登记步骤提供的样本元数据"""

    id_sample: int
    dir_pattern: Optional[str]
    is_control: bool = False
    program: Optional[str] = None
    database: Optional[str] = None

    def effective_pattern(self, control_barcode: str = "bar99") -> Optional[str]:
        """对照样本的目录模式：末尾的 barcode 编号替换为保留的对照 barcode"""
        if not self.dir_pattern:
            return None
        if self.is_control:
            return CONTROL_BARCODE_RE.sub(control_barcode, self.dir_pattern)
        return self.dir_pattern

    @classmethod
    def from_dict(cls, id_sample: Any, data: Mapping[str, Any]) -> "SampleMeta":
        """
        从上游字典构建 SampleMeta

        兼容两种键名：
        - "number of run and barcode" / "dir_pattern"
        - "_isControl_" ('t'/'f') / "is_control" (bool)
        """
        if not isinstance(data, Mapping):
            raise StructureError(f"Sample entry ->{id_sample}<- is not a mapping")
        try:
            id_sample = int(id_sample)
        except (TypeError, ValueError):
            raise StructureError(f"Invalid sample ID ->{id_sample}<-") from None

        dir_pattern = data.get("number of run and barcode", data.get("dir_pattern")) or None
        raw_control = data.get("_isControl_", data.get("is_control", False))
        if isinstance(raw_control, bool):
            is_control = raw_control
        elif raw_control in ("t", "f"):
            is_control = raw_control == "t"
        else:
            raise StructureError(f"Unexpected value ->{raw_control}<- for _isControl_")

        return cls(
            id_sample=id_sample,
            dir_pattern=dir_pattern,
            is_control=is_control,
            program=data.get("program") or None,
            database=data.get("database") or None,
        )


def build_sample_map(raw: Mapping[Any, Any]) -> Dict[int, SampleMeta]:
    """将上游 {id_sample: {...}} 结构转换为 {id_sample: SampleMeta}"""
    if not isinstance(raw, Mapping) or not raw:
        raise StructureError("No keys or not a reference")
    samples: Dict[int, SampleMeta] = {}
    for id_sample, data in raw.items():
        meta = data if isinstance(data, SampleMeta) else SampleMeta.from_dict(id_sample, data)
        samples[meta.id_sample] = meta
    return samples


def lineage_as_names(lineage: Lineage) -> Dict[str, Optional[str]]:
    """将 Lineage 转为 {rank: 数据库取值}，便于比较和导出"""
    return {rank: taxon.to_db() for rank, taxon in lineage.items()}
