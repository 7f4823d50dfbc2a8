import os
from contextlib import contextmanager
from typing import Generator, Optional

from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker

from wc_subscriptions.core.config import cfg
from wc_subscriptions.core.log import get_logger
from wc_subscriptions.core.events import log_event, E

logger = get_logger(__name__)

DEFAULT_DB_URL = "sqlite:///data/subscriptions.db"


class Db:
    def __init__(self, url: Optional[str] = None, tag: str = "默认"):
        self.tag = tag
        self.url = ""
        self.engine = None
        self._session_factory = None
        self.init(url or str(cfg.get("db", DEFAULT_DB_URL)))

    def init(self, url: str) -> None:
        """(重新)绑定数据库连接。"""
        if self.engine is not None:
            self.engine.dispose()
        self.url = url
        connect_args = {}
        if url.startswith("sqlite"):
            # 后台 Job 线程与请求线程共用连接池
            connect_args = {"check_same_thread": False, "timeout": 30}
        self.engine = create_engine(url, connect_args=connect_args, pool_pre_ping=True)
        self._session_factory = sessionmaker(bind=self.engine, expire_on_commit=False)

    def create_tables(self) -> None:
        if self.url.startswith("sqlite"):
            path = self.url.split("///", 1)[-1]
            if path and path != ":memory:":
                os.makedirs(os.path.dirname(os.path.abspath(path)), exist_ok=True)
        from wc_subscriptions.core.models.base import Base
        import wc_subscriptions.core.models  # noqa: F401  注册全部模型

        Base.metadata.create_all(self.engine)
        log_event(logger, E.SYSTEM_DB_INIT, tag=self.tag, url=self.url.split("@")[-1])

    def get_session(self) -> Session:
        return self._session_factory()

    @contextmanager
    def session_scope(self) -> Generator[Session, None, None]:
        session = self.get_session()
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()


DB = Db()
