# metagdb/processing/file_management.py
"""
文件管理模块：按目录模式查找分类器/FASTQ 文件，读取文件内容并解压嵌套压缩包。

支持的压缩格式（按内容魔数识别，而非扩展名）：ZIP、GZIP（多成员）、BZIP2，可任意嵌套。
macOS 资源分叉文件（以 '._' 开头）在查找和解压时都会被忽略。
"""

import bz2
import gzip
import io
import logging
import os
import re
import zipfile
from pathlib import Path
from typing import List, Union

from metagdb.exceptions import FileLocationError
from metagdb.utils.yaml_config import DEFAULT_MAX_FILE_SIZE

logger = logging.getLogger(__name__)

ZIP_MAGIC = (b"PK\x03\x04", b"PK\x05\x06")
GZIP_MAGIC = b"\x1f\x8b"
BZIP2_MAGIC = b"BZh"

# 去掉任意数量的扩展名，保留以点开头的隐藏文件名
_EXTENSIONS_RE = re.compile(r"^(.+?)(\.[a-zA-Z0-9]+)+$")


def is_resource_fork(name: str) -> bool:
    """macOS 资源分叉文件"""
    return name.startswith("._") or "/._" in name


def find_files(base_dir: Union[str, Path], dir_pattern: str, file_pattern: str) -> List[str]:
    """
    在 base_dir 下查找文件：目录路径需以 dir_pattern 结尾，文件名需匹配 file_pattern

    Args:
        base_dir: 根目录
        dir_pattern: 目录模式（正则，匹配目录路径末尾，如 run01_bar01）
        file_pattern: 文件名正则

    Returns:
        排序后的绝对路径列表；没有任何匹配时返回空列表

    Raises:
        FileLocationError: 参数缺失、同一目录下存在同名不同扩展名的文件、
                           或多个目录匹配该模式（模式过于宽泛）
    """
    if not base_dir or not dir_pattern or not file_pattern:
        raise FileLocationError("Not enough arguments for file search")

    dir_re = re.compile(f"{dir_pattern}$")
    file_re = re.compile(file_pattern)

    files: List[str] = []
    stems = set()
    dirs = set()

    for current_dir, _, file_names in os.walk(str(Path(base_dir).absolute())):
        if not dir_re.search(current_dir):
            continue
        for file_name in file_names:
            if is_resource_fork(file_name) or not file_re.search(file_name):
                continue
            path = os.path.join(current_dir, file_name)

            # a.gz 与 a.zip 视为重复文件；a.gz 与 b.zip 则不是
            stem = os.path.join(current_dir, _EXTENSIONS_RE.sub(r"\1", file_name))
            if stem in stems:
                raise FileLocationError(f"Found possible duplicate with different extension ->{stem}<-")
            stems.add(stem)
            files.append(path)
            dirs.add(current_dir)

    if len(dirs) > 1:
        raise FileLocationError(
            f"Directory pattern ->{dir_pattern}<- too unspecific. Matches: {'; '.join(sorted(dirs))}",
            suggestion="Use a directory pattern that identifies exactly one run and barcode",
        )
    if not files:
        logger.debug(f"No results for directory pattern ->{dir_pattern}<- and file pattern ->{file_pattern}<-")
    return sorted(files)


def read_file(path: Union[str, Path], max_file_size: int = DEFAULT_MAX_FILE_SIZE) -> bytes:
    """
    读取整个文件（二进制）

    :param path: 文件路径
    :param max_file_size: 最大文件大小（字节），默认 3 GiB
    :raises FileLocationError: 文件不存在或超过大小限制
    """
    path = Path(path)
    if isinstance(max_file_size, bool) or not isinstance(max_file_size, int) or max_file_size < 1:
        raise FileLocationError(f"Invalid maximum file size ->{max_file_size}<-")
    if not path.is_file():
        raise FileLocationError(f"Input file ->{path}<- does not exist")
    if path.stat().st_size > max_file_size:
        raise FileLocationError(f"Input file is bigger than the file size limit (->{max_file_size}<- bytes)")
    return path.read_bytes()


def _extract_zip(data: bytes) -> bytes:
    """按顺序拼接 ZIP 成员内容，跳过资源分叉文件"""
    with zipfile.ZipFile(io.BytesIO(data)) as archive:
        names = archive.namelist()
        if len(set(names)) != len(names):
            raise FileLocationError(
                f"Found ->{len(set(names))}<- unique member names, but expected ->{len(names)}<-"
            )
        chunks = []
        for name in names:
            if is_resource_fork(name) or name.endswith("/"):
                continue
            chunks.append(archive.read(name))
    return b"".join(chunks)


def extract_value(data: Union[bytes, str], max_level: int = -1) -> str:
    """
    解压（可嵌套的）压缩内容并解码为 UTF-8 文本；未压缩内容原样返回

    Args:
        data: 文件原始内容
        max_level: 最多解压层数，-1 表示不限制，0 表示不解压

    Returns:
        解压后的文本
    """
    if isinstance(max_level, bool) or not isinstance(max_level, int) or max_level < -1:
        raise FileLocationError(f"Illegal value for maxLevel ->{max_level}<-")
    if isinstance(data, str):
        data = data.encode("utf-8")

    level = 0
    while data.strip() and max_level != level:
        if data.startswith(ZIP_MAGIC):
            data = _extract_zip(data)
        elif data.startswith(GZIP_MAGIC):
            data = gzip.decompress(data)
        elif data.startswith(BZIP2_MAGIC):
            data = bz2.decompress(data)
        else:
            break
        level += 1
        if not data.strip():
            logger.warning("No content after extraction")

    try:
        return data.decode("utf-8")
    except UnicodeDecodeError as e:
        raise FileLocationError(f"Unsupported or corrupt file content: {e}") from e


def load_text(path: Union[str, Path], max_file_size: int = DEFAULT_MAX_FILE_SIZE) -> str:
    """读取文件并解压为文本"""
    return extract_value(read_file(path, max_file_size))


def load_texts(paths: List[str], max_file_size: int = DEFAULT_MAX_FILE_SIZE) -> str:
    """按顺序读取多个文件并拼接文本内容"""
    parts = []
    for path in paths:
        text = load_text(path, max_file_size)
        if text and not text.endswith("\n"):
            text += "\n"
        parts.append(text)
    return "".join(parts)
