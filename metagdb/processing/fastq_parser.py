# metagdb/processing/fastq_parser.py
"""FASTQ 解析：每 4 行一条记录，头部形如 ``@<read_id> key=value key=value ...``"""

import logging
from typing import Any, Dict, Iterable, Optional

from metagdb.exceptions import ParseError
from metagdb.processing.lineage_parser import split_lines

logger = logging.getLogger(__name__)

# 序列导入需要从头部提取的元数据
FASTQ_METADATA_FIELDS = ("runid", "barcode", "flow_cell_id", "basecall_model_version_id")

SEQ_KEY = "_seq_"
QUAL_KEY = "_qual_"


def calc_seq_error(quality: str) -> float:
    """
    计算质量字符串的平均错误概率：mean(10 ** (-(ord(c) - 33) / 10))

    :raises ParseError: 质量字符串为空或包含 ASCII 33-126 以外的字符
    """
    if not quality:
        raise ParseError("Empty quality string")
    total = 0.0
    for char in quality:
        code = ord(char)
        if code < 33 or code > 126:
            raise ParseError(f"Invalid quality character ->{char}<-")
        total += 10 ** (-(code - 33) / 10)
    return total / len(quality)


def parse_fastq(text: str, target_fields: Optional[Iterable[str]] = None) -> Dict[str, Dict[str, Any]]:
    """
    解析 FASTQ 内容

    Args:
        text: FASTQ 文本
        target_fields: 需要从头部提取的元数据键，默认 FASTQ_METADATA_FIELDS

    Returns:
        {read_id: {元数据键: 值或 None, "_seq_": 序列, "_qual_": 质量, "seqerr": 平均错误概率}}
        同一 read ID 出现多次时保留第一条
    """
    fields = tuple(FASTQ_METADATA_FIELDS if target_fields is None else target_fields)
    if SEQ_KEY in fields or QUAL_KEY in fields:
        raise ParseError(f"Header metadata cannot contain special keys ->{SEQ_KEY}<- or ->{QUAL_KEY}<-")

    lines = split_lines(text)
    if not lines or len(lines) % 4 != 0:
        raise ParseError(f"Invalid FASTQ; ->{len(lines)}<- lines")

    reads: Dict[str, Dict[str, Any]] = {}
    for start in range(0, len(lines), 4):
        header, nucs, separator, quality = lines[start:start + 4]

        header_parts = header.split()
        if not header_parts or not header_parts[0].startswith("@") or len(header_parts[0]) == 1:
            raise ParseError(f"Invalid FASTQ header ->{header}<-")
        if not separator.startswith("+"):
            raise ParseError(f"Invalid FASTQ format: expected '+' separator for ->{header_parts[0]}<-")

        read_id = header_parts[0][1:]
        if read_id in reads:
            logger.debug(f"Duplicate read ->{read_id}<- in FASTQ, keeping first record")
            continue

        record: Dict[str, Any] = dict.fromkeys(fields)
        for entry in header_parts[1:]:
            key, _, value = entry.partition("=")
            if key in record:
                record[key] = value

        record[SEQ_KEY] = nucs.strip()
        record[QUAL_KEY] = quality.strip()
        record["seqerr"] = calc_seq_error(record[QUAL_KEY])
        reads[read_id] = record

    return reads
