"""数据处理模块：分类器输出与 FASTQ 解析、文件定位、对账及各表的导入处理器"""

# 解析与文件
from .lineage_parser import parse_metag, parse_kraken2, parse_lineages, split_lines
from .fastq_parser import parse_fastq, calc_seq_error
from .file_management import find_files, read_file, extract_value

# 定位、对账与哨兵
from .read_locator import ReadLocator, Classifier, group_patterns
from .reconciler import match_samples, reconcile_reads
from .sentinel_policy import resolve_lineage, filtered_lineage

# 表数据处理器
from .sequence_processor import SequenceProcessor
from .taxonomy_processor import TaxonomyProcessor
from .classification_processor import ClassificationProcessor
from .taxclass_processor import TaxclassProcessor
