# metagdb/processing/lineage_parser.py
"""
分类器输出解析：将一批 read 的分类结果转换为 read_id -> {rank -> Taxon}

Format A（MetaG，自由文本）::

    >read_1
    domain: Bacteria: 1(1)
    phylum: unclassified: 1(1)
    No match for read_2

Format B（Kraken2 风格，制表符分隔，每行一个 read）::

    C<TAB>read_1<TAB>562<TAB>2<TAB>d__Bacteria;p__Proteobacteria
    U<TAB>read_2<TAB>0<TAB>0<TAB>
"""

import logging
import re
from typing import Callable, Dict, List, Optional, Sequence

from metagdb.exceptions import ParseError
from metagdb.models.records import (
    Lineage, LineageMap, Taxon,
    UNCLASSIFIED_TAXON, UNMATCHED_TAXON,
)
from metagdb.utils.yaml_config import DEFAULT_RANKS, validate_ranks

logger = logging.getLogger(__name__)

UNCLASSIFIED_LABEL = "unclassified"

# Kraken2 风格谱系中的阶元代码
RANK_CODES = dict(zip(DEFAULT_RANKS, ["d", "p", "c", "sc", "o", "so", "f", "g", "s", "t"]))

_NO_MATCH_RE = re.compile(r"^No match for ([a-zA-Z0-9\-_]+)")
_NO_MATCHES_RE = re.compile(r"^No matches for ([a-zA-Z0-9\-_]+)")


def split_lines(text: Optional[str]) -> List[str]:
    """按 \\n 或 \\r\\n 拆分文本，并去掉空行和只含空白的行"""
    if not text or text.isspace():
        return []
    separator = "\r\n" if "\r\n" in text else "\n"
    return [line for line in text.split(separator) if line.strip()]


def _taxon_from_label(label: str) -> Taxon:
    label = label.strip()
    if not label or label == UNCLASSIFIED_LABEL:
        return UNCLASSIFIED_TAXON
    return Taxon.real(label)


def _fill_unmatched(lineage: Lineage, ranks: Sequence[str], start: int) -> None:
    for rank in ranks[start:]:
        lineage[rank] = UNMATCHED_TAXON


def parse_metag(text: str, ranks: Optional[Sequence[str]] = None) -> LineageMap:
    """
    解析 MetaG 输出

    - ">read_id" 开始一个 read，随后每行按顺序给出一个阶元：``<rank>: <taxon>: <辅助信息>``
    - 阶元行少于 ranks 时，其余阶元记为 UNMATCHED；多出的阶元行忽略
    - "No match for <read_id>" 表示该 read 整体未分类，所有阶元记为 UNMATCHED
    - "No matches for ..." 是分类器内部错误，文件不可用
    - taxon 为 "unclassified" 时记为 UNCLASSIFIED（数据库中为 NULL）

    :param text: 分类器输出文本
    :param ranks: 期望的阶元顺序，默认 domain ... strain
    :return: {read_id: {rank: Taxon}}
    :raises ParseError: 内容为空或格式错误
    """
    ranks = validate_ranks(list(ranks) if ranks is not None else list(DEFAULT_RANKS))
    lines = split_lines(text)
    if not lines:
        raise ParseError("No classifications present")

    result: LineageMap = {}
    read_id: Optional[str] = None
    position = 0

    def finish_read() -> None:
        if read_id is None or position >= len(ranks):
            return
        if position == 0:
            raise ParseError(f"No classification for ->{read_id}<-")
        _fill_unmatched(result[read_id], ranks, position)

    for line in lines:
        if line.startswith(">"):
            finish_read()
            read_id = line[1:].strip()
            if not read_id:
                raise ParseError("No read ID in read header")
            if read_id in result:
                raise ParseError(f"Read ->{read_id}<- has been classified twice")
            result[read_id] = {}
            position = 0
        elif _NO_MATCHES_RE.match(line):
            raise ParseError(
                f"Statement ->{line}<- should not appear in classification file",
                suggestion="The classifier reported an internal error; regenerate the classification file",
            )
        elif line.startswith("No match for"):
            finish_read()
            match = _NO_MATCH_RE.match(line)
            if not match:
                raise ParseError("No read ID for unclassified read")
            read_id = match.group(1)
            if read_id in result:
                raise ParseError(f"Read ->{read_id}<- has been classified twice")
            result[read_id] = {}
            _fill_unmatched(result[read_id], ranks, 0)
            position = len(ranks)
        else:
            if read_id is None:
                raise ParseError("No read ID for classification")
            if position >= len(ranks):
                logger.debug(f"Ignoring surplus rank line ->{line}<- for read ->{read_id}<-")
                continue

            expected = ranks[position]
            parts = line.split(": ")
            if len(parts) < 2:
                raise ParseError(f"Malformed classification line ->{line}<-. Read ->{read_id}<-")
            rank, label = parts[0].strip(), parts[1]
            if rank != expected:
                raise ParseError(
                    f"Rank ->{rank}<- in classification file does not match provided rank ->{expected}<-. "
                    f"Read ->{read_id}<-"
                )
            if rank in result[read_id]:
                raise ParseError(f"Read ->{read_id}<- has been classified twice at rank ->{rank}<-")
            result[read_id][rank] = _taxon_from_label(label)
            position += 1

    finish_read()
    return result


def _rank_matches(code: str, rank: str) -> bool:
    return code == rank or code == RANK_CODES.get(rank)


def parse_kraken2(text: str, ranks: Optional[Sequence[str]] = None) -> LineageMap:
    """
    解析 Kraken2 风格输出：状态、read ID、taxid、解析深度、谱系

    谱系由 ';' 分隔的 ``<rank-code>__<name>`` 组成，阶元代码也可以写成完整阶元名。
    U 行所有阶元记为 UNMATCHED；C 行前 depth 个阶元取谱系中的名称，其余为 UNMATCHED。
    """
    ranks = validate_ranks(list(ranks) if ranks is not None else list(DEFAULT_RANKS))
    lines = split_lines(text)
    if not lines:
        raise ParseError("No classifications present")

    result: LineageMap = {}
    for line_number, line in enumerate(lines, start=1):
        columns = line.rstrip("\r\n").split("\t")
        if len(columns) != 5:
            raise ParseError(f"Expected 5 tab-separated columns, found ->{len(columns)}<- in line {line_number}")
        status, read_id, _, depth_value, lineage_value = (column.strip() for column in columns)

        if not read_id:
            raise ParseError(f"No read ID in line {line_number}")
        if read_id in result:
            raise ParseError(f"Read ->{read_id}<- has been classified twice")
        if status not in ("C", "U"):
            raise ParseError(f"Unknown classification status ->{status}<-. Read ->{read_id}<-")

        lineage: Lineage = {}
        result[read_id] = lineage
        if status == "U":
            _fill_unmatched(lineage, ranks, 0)
            continue

        if not depth_value.isdigit():
            raise ParseError(f"Invalid depth ->{depth_value}<-. Read ->{read_id}<-")
        depth = min(int(depth_value), len(ranks))

        items = [item for item in lineage_value.split(";") if item.strip()]
        if len(items) < depth:
            raise ParseError(
                f"Lineage has ->{len(items)}<- entries, but depth is ->{depth}<-. Read ->{read_id}<-"
            )

        for position in range(depth):
            code, separator, name = items[position].strip().partition("__")
            if not separator:
                raise ParseError(f"Malformed lineage entry ->{items[position]}<-. Read ->{read_id}<-")
            expected = ranks[position]
            if not _rank_matches(code, expected):
                raise ParseError(
                    f"Rank ->{code}<- in classification file does not match provided rank ->{expected}<-. "
                    f"Read ->{read_id}<-"
                )
            lineage[expected] = _taxon_from_label(name)
        _fill_unmatched(lineage, ranks, depth)

    return result


PARSERS: Dict[str, Callable[..., LineageMap]] = {
    "metag": parse_metag,
    "kraken2": parse_kraken2,
}


def parse_lineages(text: str, file_format: str, ranks: Optional[Sequence[str]] = None) -> LineageMap:
    """按格式名分派到对应解析器"""
    try:
        parser = PARSERS[file_format]
    except KeyError:
        raise ParseError(f"Unknown classification format ->{file_format}<-") from None
    return parser(text, ranks)
