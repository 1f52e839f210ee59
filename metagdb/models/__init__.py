"""
数据模型和数据库操作模块
"""

from .database import (
    get_db_config,
    get_database_url,
    get_engine,
    get_session,
    create_schema
)

from .models import (
    Base,
    Change,
    Sequence,
    Classification,
    Taxonomy,
    Taxclass
)

from .records import (
    Taxon,
    TaxonKind,
    UNCLASSIFIED_TAXON,
    UNMATCHED_TAXON,
    FILTERED_TAXON,
    SampleMeta,
    SequenceKey,
    ClassificationKey,
    TaxonomyKey,
    TaxclassKey,
    ProgramDatabase,
    TaxonomyLink
)

__all__ = [
    # 数据库配置和会话管理
    'get_db_config',
    'get_database_url',
    'get_engine',
    'get_session',
    'create_schema',

    # 数据模型类
    'Base',
    'Change',
    'Sequence',
    'Classification',
    'Taxonomy',
    'Taxclass',

    # 类型化记录
    'Taxon',
    'TaxonKind',
    'UNCLASSIFIED_TAXON',
    'UNMATCHED_TAXON',
    'FILTERED_TAXON',
    'SampleMeta',
    'SequenceKey',
    'ClassificationKey',
    'TaxonomyKey',
    'TaxclassKey',
    'ProgramDatabase',
    'TaxonomyLink'
]
