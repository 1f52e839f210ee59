# metagdb/models/models.py
"""
导入流程涉及的数据表：change、sequence、classification、taxonomy、taxclass。
所有记录只插入、不更新；自然键由唯一约束保证。
自然键按字节比较（utf8mb4_bin），大小写或重音不同的名称视为不同记录。
"""

from sqlalchemy import (
    Column, String, Integer, Float, Text, BigInteger,
    ForeignKey, Index, UniqueConstraint
)
from sqlalchemy.orm import relationship, declarative_base

Base = declarative_base()


class Change(Base):
    """每次导入调用对应一条变更记录"""
    __tablename__ = 'change'

    id = Column(Integer, primary_key=True, autoincrement=True)
    username = Column(String(16), nullable=False, comment="执行导入的用户")
    ts = Column(BigInteger, nullable=False, comment="Unix 时间戳（秒）")

    __table_args__ = {'mysql_charset': 'utf8mb4', 'mysql_collate': 'utf8mb4_bin', 'mysql_engine': 'InnoDB'}


class Sequence(Base):
    """存储单条 read（一条物理测序读段对应一行）"""
    __tablename__ = 'sequence'

    id = Column(Integer, primary_key=True, autoincrement=True)
    id_sample = Column(Integer, nullable=False, comment="样本内部ID（样本登记由上游完成）")
    flowcellid = Column(String(8), comment="FASTQ header: flow_cell_id")
    runid = Column(String(42), nullable=False, comment="FASTQ header: runid")
    barcode = Column(String(12), nullable=False, comment="FASTQ header: barcode")
    readid = Column(String(38), nullable=False, comment="FASTQ header: read ID")
    callermodel = Column(String(46), comment="FASTQ header: basecall_model_version_id")
    nucs = Column(Text, nullable=False)
    quality = Column(Text, nullable=False)
    seqerr = Column(Float, nullable=False, comment="派生: 质量值的平均错误概率")
    seqlen = Column(Integer, nullable=False, comment="派生: len(nucs)")
    id_change = Column(Integer, ForeignKey('change.id'), nullable=False)

    classifications = relationship("Classification", back_populates="sequence")

    __table_args__ = (
        UniqueConstraint('id_sample', 'flowcellid', 'runid', 'barcode', 'readid', name='uix_sequence'),
        {'mysql_charset': 'utf8mb4', 'mysql_collate': 'utf8mb4_bin', 'mysql_engine': 'InnoDB'}
    )


class Classification(Base):
    """一条 read 在某个分类程序/数据库下的分类记录"""
    __tablename__ = 'classification'

    id = Column(Integer, primary_key=True, autoincrement=True)
    id_sequence = Column(Integer, ForeignKey('sequence.id'), nullable=False)
    program = Column(String(32), nullable=False)
    database = Column(String(32), nullable=False)
    id_change = Column(Integer, ForeignKey('change.id'), nullable=False)

    sequence = relationship("Sequence", back_populates="classifications")

    __table_args__ = (
        UniqueConstraint('id_sequence', 'program', 'database', name='uix_classification'),
        {'mysql_charset': 'utf8mb4', 'mysql_collate': 'utf8mb4_bin', 'mysql_engine': 'InnoDB'}
    )


class Taxonomy(Base):
    """分类单元 (name, rank)；name 为空表示该阶元未定名（unclassified）"""
    __tablename__ = 'taxonomy'

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(256), comment="NULL = unclassified；保留值 UNMATCHED / FILTERED")
    rank = Column(String(32), nullable=False)
    id_change = Column(Integer, ForeignKey('change.id'), nullable=False)

    __table_args__ = (
        # NULL 在唯一约束中互不相等，NULL 名称的去重由仓库层的查询保证
        UniqueConstraint('name', 'rank', name='uix_taxonomy'),
        Index('idx_taxonomy_rank', 'rank'),
        {'mysql_charset': 'utf8mb4', 'mysql_collate': 'utf8mb4_bin', 'mysql_engine': 'InnoDB'}
    )


class Taxclass(Base):
    """classification 与 taxonomy 的关联：每个阶元一行"""
    __tablename__ = 'taxclass'

    id_taxonomy = Column(Integer, ForeignKey('taxonomy.id'), primary_key=True)
    id_classification = Column(Integer, ForeignKey('classification.id'), primary_key=True)
    id_change = Column(Integer, ForeignKey('change.id'), nullable=False)

    __table_args__ = (
        Index('idx_taxclass_change', 'id_change'),
        {'mysql_charset': 'utf8mb4', 'mysql_collate': 'utf8mb4_bin', 'mysql_engine': 'InnoDB'}
    )
