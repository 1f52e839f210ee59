# tests/support.py
"""测试公共工具：测试配置、内存数据库和文件系统夹具"""
import bz2
import gzip
import io
import zipfile
from pathlib import Path

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from metagdb.models.database import create_schema
from metagdb.utils.yaml_config import YAMLConfig

TEST_CONFIG = str(Path(__file__).parent / "config" / "test_config.yaml")

RANKS = ["domain", "phylum", "class", "subclass", "order",
         "suborder", "family", "genus", "species", "strain"]


def make_config() -> YAMLConfig:
    return YAMLConfig(TEST_CONFIG)


def make_engine():
    """内存 SQLite 引擎（同一线程共享一个连接）"""
    engine = create_engine("sqlite://")
    create_schema(engine)
    return engine


def make_session(engine):
    return sessionmaker(bind=engine, autoflush=False)()


def fastq_record(read_id: str, seq: str = "ACGT", qual: str = "++++",
                 runid: str = "run1", barcode: str = "barcode01", flow_cell_id: str = "FAQ12345") -> str:
    return (
        f"@{read_id} runid={runid} barcode={barcode} flow_cell_id={flow_cell_id} "
        f"basecall_model_version_id=dna_r9.4.1\n{seq}\n+\n{qual}\n"
    )


def metag_record(read_id: str, lineage) -> str:
    """lineage: [(rank, taxon), ...]"""
    lines = [f">{read_id}"]
    lines.extend(f"{rank}: {taxon}: 1(1)" for rank, taxon in lineage)
    return "\n".join(lines) + "\n"


def write(path: Path, data) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    if isinstance(data, str):
        data = data.encode("utf-8")
    path.write_bytes(data)
    return path


def gzip_bytes(text: str) -> bytes:
    return gzip.compress(text.encode("utf-8"))


def bzip2_bytes(text: str) -> bytes:
    return bz2.compress(text.encode("utf-8"))


def zip_bytes(members) -> bytes:
    """members: [(name, bytes 或 str), ...]"""
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w") as archive:
        for name, content in members:
            archive.writestr(name, content)
    return buffer.getvalue()
