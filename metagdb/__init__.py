"""metagdb：分类器输出与测序 read 的幂等导入"""

__version__ = "0.1.0"
