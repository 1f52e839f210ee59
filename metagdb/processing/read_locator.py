# metagdb/processing/read_locator.py
"""
按目录模式定位分类器输出文件，解压、解析，并把解析出的谱系关联到样本。

目录结构：``<base>/<dir_pattern>/<prefix>_<classifier-suffix>[.zip|.gz|.bz2]``
"""

import logging
from pathlib import Path
from typing import Dict, List, Mapping, NamedTuple, Optional, Union

from metagdb.exceptions import ConfigurationError
from metagdb.models.records import LineageMap, SampleMeta
from metagdb.processing.file_management import find_files, load_texts
from metagdb.processing.lineage_parser import parse_lineages
from metagdb.utils.diagnostics import Diagnostics
from metagdb.utils.yaml_config import YAMLConfig, get_yaml_config

logger = logging.getLogger(__name__)


class Classifier(NamedTuple):
    """一个目录模式所使用的分类器"""
    program: str
    file_format: str
    file_pattern: str


def group_patterns(samples: Mapping[int, SampleMeta], control_barcode: str = "bar99") -> Dict[str, List[SampleMeta]]:
    """
    按（对照样本替换后的）目录模式对样本分组

    多个病例样本共享同一目录模式是配置错误；对照样本允许共享，其 read 合并使用。
    没有目录模式的样本被跳过。

    :return: {dir_pattern: [SampleMeta, ...]}
    """
    patterns: Dict[str, List[SampleMeta]] = {}
    for id_sample in sorted(samples):
        meta = samples[id_sample]
        pattern = meta.effective_pattern(control_barcode)
        if not pattern:
            logger.debug(f"Sample {id_sample} has no directory pattern, skipped")
            continue

        members = patterns.setdefault(pattern, [])
        if members and not (meta.is_control and all(member.is_control for member in members)):
            raise ConfigurationError(
                f"Multiple samples share the same directory pattern ->{pattern}<-",
                suggestion="Only control samples may share a directory pattern",
            )
        members.append(meta)
    return patterns


class ReadLocator:
    """
    分类器输出文件定位器

    ✅ 设计原则：
    - 只读文件系统，不访问数据库
    - 找不到文件、文件内容为空：记录警告并返回空谱系（由哨兵策略记为 FILTERED）
    - 文件内容格式错误、目录模式过于宽泛：直接抛出异常
    """

    def __init__(self, base_path: Union[str, Path], config: Optional[YAMLConfig] = None,
                 diagnostics: Optional[Diagnostics] = None, ranks: Optional[List[str]] = None):
        if not base_path:
            raise ConfigurationError("Base path for classification files not provided")
        self.base_path = Path(base_path)
        self.config = config or get_yaml_config()
        self.diagnostics = diagnostics if diagnostics is not None else Diagnostics(logger)
        self.ranks = ranks or self.config.get_ranks()
        self.max_file_size = self.config.get_max_file_size()

    def resolve_classifier(self, dir_pattern: str, samples: List[SampleMeta]) -> Classifier:
        """
        确定目录模式对应的分类器：所有样本必须给出相同的 program

        :raises ConfigurationError: program/database 缺失、同一数据存在多个分类器、分类器未知
        """
        program = None
        for meta in samples:
            if not meta.program:
                raise ConfigurationError(f"Mandatory value for program name not found (sample ->{meta.id_sample}<-)")
            if not meta.database:
                raise ConfigurationError(f"Mandatory value for database name not found (sample ->{meta.id_sample}<-)")
            if program and meta.program != program:
                raise ConfigurationError(
                    f"Multiple classifiers ->{meta.program}<- and ->{program}<- for the same data ->{dir_pattern}<-"
                )
            program = meta.program
        if program is None:
            raise ConfigurationError(f"Mandatory value for program name not found (pattern ->{dir_pattern}<-)")

        settings = self.config.get_classifier_config(program)
        return Classifier(program, settings.get("format", settings["name"]), settings["file_pattern"])

    def load_lineages(self, dir_pattern: str, classifier: Classifier) -> LineageMap:
        """
        读取并解析目录模式下的全部分类器文件

        :return: {read_id: Lineage}；未找到文件或内容为空时返回空字典
        """
        files = find_files(self.base_path, dir_pattern, classifier.file_pattern)
        if not files:
            self.diagnostics.warning(
                f"No classification files for directory pattern ->{dir_pattern}<- "
                f"and file pattern ->{classifier.file_pattern}<-",
                dir_pattern=dir_pattern, program=classifier.program,
            )
            return {}

        text = load_texts(files, self.max_file_size)
        if not text.strip():
            self.diagnostics.warning(
                f"Classification files for directory pattern ->{dir_pattern}<- are empty",
                dir_pattern=dir_pattern, files=files,
            )
            return {}

        lineages = parse_lineages(text, classifier.file_format, self.ranks)
        logger.info(f"Parsed {len(lineages)} classified reads from {len(files)} file(s) in ->{dir_pattern}<-")
        return lineages

    def locate(self, pattern_samples: Mapping[str, List[SampleMeta]]) -> Dict[str, Dict[int, LineageMap]]:
        """
        为每个目录模式定位并解析分类器输出

        :param pattern_samples: {dir_pattern: [SampleMeta, ...]}
        :return: {dir_pattern: {id_sample: {read_id: Lineage}}}；共享目录的对照样本得到相同的谱系
        """
        located: Dict[str, Dict[int, LineageMap]] = {}
        for dir_pattern, samples in pattern_samples.items():
            classifier = self.resolve_classifier(dir_pattern, samples)
            lineages = self.load_lineages(dir_pattern, classifier)
            located[dir_pattern] = {meta.id_sample: lineages for meta in samples}
        return located
