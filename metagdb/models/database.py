# metagdb/models/database.py
from sqlalchemy import create_engine, text
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker, Session
from typing import Optional, Generator, Dict, Any
from contextlib import contextmanager

from metagdb.models.models import Base
from metagdb.utils.yaml_config import get_yaml_config

# 数据库连接池配置
POOL_SIZE = 10
MAX_OVERFLOW = 20
POOL_RECYCLE = 3600  # 1小时回收连接，避免超时


def get_db_config(config_file: Optional[str] = None, user_role: Optional[str] = None) -> Dict[str, Any]:
    """
    读取数据库配置（从 config/config.yaml 读取）
    支持多用户配置，可以根据角色选择不同的数据库用户

    :param config_file: 配置文件路径（可选）
    :param user_role: 用户角色（reader/writer），默认为writer
    :return: 数据库配置字典（含host、port、user、password、database）
    """
    config = get_yaml_config(config_file)
    db_config = config.get_database_config()

    if not user_role:
        user_role = "writer"

    result_config = {
        "host": db_config.get("host", "localhost"),
        "port": db_config.get("port", 3306),
        "database": db_config.get("db_name", "metagdb"),
        "charset": db_config.get("charset", "utf8mb4")
    }

    users_config = db_config.get("users", {})
    if user_role not in users_config:
        raise ValueError(f"配置文件中缺少用户角色 '{user_role}' 的配置")

    user_specific = users_config[user_role]
    result_config["user"] = user_specific.get("user", "")
    result_config["password"] = user_specific.get("password", "")

    # 校验必填配置项
    required_keys = ["host", "port", "user", "password", "database"]
    missing_keys = [key for key in required_keys if key not in result_config or not result_config[key]]
    if missing_keys:
        raise ValueError(f"数据库配置缺失必填项：{missing_keys}")

    result_config["port"] = int(result_config["port"])

    return result_config


def get_database_url(config_file: Optional[str] = None, user_role: Optional[str] = None) -> str:
    """优先使用 database.url，否则拼接 MySQL 连接字符串"""
    url = get_yaml_config(config_file).get("database.url")
    if url:
        return url

    db_config = get_db_config(config_file, user_role)
    return (
        f"mysql+pymysql://{db_config['user']}:{db_config['password']}"
        f"@{db_config['host']}:{db_config['port']}/{db_config['database']}?charset={db_config['charset']}"
    )


def get_engine(config_file: Optional[str] = None, user_role: Optional[str] = None) -> Engine:
    """
    创建SQLAlchemy引擎
    :param config_file: 数据库配置文件路径（可选）
    :param user_role: 用户角色（reader/writer），默认为writer
    :return: SQLAlchemy引擎
    """
    url = get_database_url(config_file, user_role)

    # SQLite 不支持连接池参数
    if url.startswith("sqlite"):
        return create_engine(url, echo=False)

    return create_engine(
        url,
        pool_size=POOL_SIZE,
        max_overflow=MAX_OVERFLOW,
        pool_recycle=POOL_RECYCLE,
        pool_pre_ping=True,
        echo=False
    )


def create_schema(engine: Engine) -> None:
    """创建所有数据表（已存在的表不受影响）"""
    Base.metadata.create_all(engine)


@contextmanager
def get_session(config_file: Optional[str] = None, user_role: Optional[str] = None,
                engine: Optional[Engine] = None) -> Generator[Session, None, None]:
    """
    获取数据库会话的上下文管理器，整个 with 块即一个事务
    使用方式：
        with get_session() as db_session:
            # 执行导入操作...

    :param config_file: 配置文件路径（可选）
    :param user_role: 用户角色（reader/writer），默认为writer
    :param engine: 可选，直接传入已创建的引擎（测试中使用）
    :yield: SQLAlchemy 会话
    """
    engine = engine or get_engine(config_file, user_role)
    SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    session = SessionLocal()

    try:
        yield session
        session.commit()  # 成功则提交
    except Exception:
        session.rollback()  # 出错自动回滚，导入要么全部生效要么全部撤销
        raise
    finally:
        session.close()


if __name__ == "__main__":
    try:
        engine = get_engine()
        print(f"数据库引擎创建成功：{engine}")

        with get_session(engine=engine) as session:
            result = session.execute(text("SELECT 1"))
            print(f"数据库连接测试成功：{result.scalar_one_or_none()}")
    except Exception as e:
        print(f"数据库连接失败：{str(e)}")
