# metagdb/repositories/change_repository.py
import getpass
import logging
import time
from typing import List, Optional, Type

from metagdb.models.models import Change
from metagdb.repositories.base_repository import BaseRepository

logger = logging.getLogger(__name__)


class ChangeRepository(BaseRepository[Change]):
    """Change表专用Repository：每次导入调用登记一条变更记录"""

    def _get_model(self) -> Type[Change]:
        return Change

    def get_key_fields(self) -> List[str]:
        return ["id"]

    def make_key(self, record: Change) -> int:
        return record.id

    def create_change(self, username: Optional[str] = None, ts: Optional[int] = None) -> int:
        """
        插入一条变更记录并返回其ID

        :param username: 执行导入的用户，默认取当前系统用户
        :param ts: Unix 时间戳，默认取当前时间
        :return: change.id
        """
        username = (username or getpass.getuser())[:16]
        change = Change(username=username, ts=int(ts if ts is not None else time.time()))
        self.db_session.add(change)
        self.db_session.flush()
        logger.info(f"Registered change {change.id} for user {username}")
        return change.id
