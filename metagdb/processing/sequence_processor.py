# metagdb/processing/sequence_processor.py
from pathlib import Path
from typing import Any, Dict, Mapping, Tuple, Union

from metagdb.exceptions import ParseError, StructureError
from metagdb.models.records import SampleMeta, SequenceKey, SequenceKeys, build_sample_map
from metagdb.processing.base_processor import BaseProcessor
from metagdb.processing.fastq_parser import parse_fastq
from metagdb.processing.file_management import find_files, load_texts
from metagdb.processing.read_locator import group_patterns
from metagdb.repositories.sequence_repository import SequenceRepository


class SequenceProcessor(BaseProcessor):
    """读取样本目录下的 FASTQ 文件，去重插入 sequence 表并返回序列外键结构"""

    def __init__(self, db_session, **kwargs):
        super().__init__(db_session, **kwargs)
        self.sequence_repo = SequenceRepository(db_session, self.batch_config)
        self.fastq_pattern = self.config.get_fastq_pattern()
        self.max_file_size = self.config.get_max_file_size()

    def load_reads(self, base_path: Union[str, Path], dir_pattern: str) -> Dict[str, Dict[str, Any]]:
        """
        读取目录模式下全部 FASTQ 文件

        Returns:
            {read_id: 记录}；没有文件或内容为空时返回空字典
        """
        files = find_files(base_path, dir_pattern, self.fastq_pattern)
        if not files:
            self.diagnostics.warning(f"No FASTQ files for directory pattern ->{dir_pattern}<-", dir_pattern=dir_pattern)
            return {}

        text = load_texts(files, self.max_file_size)
        if not text.strip():
            self.diagnostics.warning(f"FASTQ files for directory pattern ->{dir_pattern}<- are empty",
                                     dir_pattern=dir_pattern, files=files)
            return {}

        try:
            return parse_fastq(text)
        except ParseError as e:
            raise ParseError(f"Error with FASTQ file(s) in ->{dir_pattern}<-: {e.message}") from e

    def insert_sequences(self, samples: Mapping[Any, Any], base_path: Union[str, Path],
                         id_change: int, is_new: bool = False) -> Tuple[SequenceKeys, bool]:
        """
        导入所有样本的 read

        Args:
            samples: {id_sample: SampleMeta 或上游字典}
            base_path: 测序数据根目录
            id_change: 本次导入的变更ID
            is_new: 运行中累积的“是否有新数据”标志

        Returns:
            ({dir_pattern: {id_sample: {read_id: id_sequence}}}, is_new)
        """
        self.check_id_change(id_change)
        sample_map: Dict[int, SampleMeta] = build_sample_map(samples)
        patterns = group_patterns(sample_map, self.control_barcode)

        sequence_keys: SequenceKeys = {}
        unique_rows = 0
        for dir_pattern, metas in patterns.items():
            reads = self.load_reads(base_path, dir_pattern)
            if not reads:
                continue

            rows: Dict[SequenceKey, Dict[str, Any]] = {}
            for read_id, read in reads.items():
                if not read.get("runid") or not read.get("barcode"):
                    raise ParseError(f"Missing runid or barcode in FASTQ header of read ->{read_id}<- in ->{dir_pattern}<-")
            for meta in metas:
                for read_id, read in reads.items():
                    key = SequenceKey(meta.id_sample, read.get("flow_cell_id"), read.get("runid"),
                                      read.get("barcode"), read_id)
                    rows[key] = self.sequence_repo.build_row(key, read, id_change)

            ids, is_new = self.sequence_repo.insert_missing(rows, is_new)
            unique_rows += len(rows)
            for key, id_sequence in ids.items():
                sequence_keys.setdefault(dir_pattern, {}).setdefault(key.id_sample, {})[key.readid] = id_sequence

        key_count = sum(len(reads) for by_sample in sequence_keys.values() for reads in by_sample.values())
        if key_count != unique_rows:
            raise StructureError("Number of foreign keys does not equal the number of unique records")

        self.logger.info(f"Sequence import finished: {key_count} reads in {len(sequence_keys)} directory pattern(s)")
        return sequence_keys, is_new
