from __future__ import annotations

import logging
import threading
from contextlib import contextmanager
from collections.abc import Generator, Mapping

from flask import Flask, g
from sqlalchemy import Connection, Engine, create_engine, event
from sqlalchemy.orm import Session, sessionmaker

from app.cms.errors import CmsError, ErrorCode

logger = logging.getLogger(__name__)

DEFAULT_POOL = "default"


def engine_kwargs_for(db_url: str) -> dict[str, object]:
    kwargs: dict[str, object] = {
        "future": True,
        "pool_pre_ping": True,
    }
    if db_url.startswith("postgres"):
        kwargs.update(
            {
                "pool_recycle": 1800,
                "pool_size": 5,
                "max_overflow": 10,
                "pool_timeout": 30,
            }
        )
    return kwargs


class SqlManager:
    """
    Hands out database connections by pool name or by URL.

    Pool names map to URLs; one engine is kept per URL. Connection failures
    are not retried here.
    """

    def __init__(self, pools: Mapping[str, str] | None = None):
        self._pools: dict[str, str] = dict(pools or {})
        self._engines: dict[str, Engine] = {}
        self._lock = threading.Lock()

    @property
    def pools(self) -> dict[str, str]:
        return dict(self._pools)

    def add_pool(self, name: str, url: str) -> None:
        self._pools[name] = url

    def pool_url(self, pool_name: str) -> str:
        url = self._pools.get(pool_name)
        if not url:
            raise CmsError(ErrorCode.NOT_FOUND, f"Unknown database pool: {pool_name!r}")
        return url

    def engine_for_url(self, db_pool_url: str) -> Engine:
        with self._lock:
            engine = self._engines.get(db_pool_url)
            if engine is None:
                engine = create_engine(db_pool_url, **engine_kwargs_for(db_pool_url))
                self._engines[db_pool_url] = engine
                logger.debug("Created engine for pool url %s", engine.url.render_as_string(hide_password=True))
            return engine

    def get_connection(self, db_pool_name: str) -> Connection:
        return self.get_connection_by_url(self.pool_url(db_pool_name))

    def get_connection_by_url(self, db_pool_url: str) -> Connection:
        return self.engine_for_url(db_pool_url).connect()

    def dispose(self) -> None:
        with self._lock:
            for engine in self._engines.values():
                engine.dispose()


def sql_manager(app: Flask | None = None) -> SqlManager:
    if app is None:
        from flask import current_app

        app = current_app
    return app.extensions["cms_sql_manager"]


def init_db(app: Flask) -> None:
    db_url = app.config["DATABASE_URL"]
    pools = dict(app.config.get("DB_POOLS") or {})
    pools[DEFAULT_POOL] = db_url
    manager = SqlManager(pools)
    engine = manager.engine_for_url(db_url)
    if app.config.get("ENV") != "production":
        @event.listens_for(engine, "checkout")
        def _receive_checkout(dbapi_connection, connection_record, connection_proxy):  # type: ignore[no-redef]
            app.logger.debug("DB connection checkout from pool")
    app.extensions["cms_sql_manager"] = manager
    app.extensions["sqlalchemy_engine"] = engine
    app.extensions["sqlalchemy_sessionmaker"] = sessionmaker(
        bind=engine,
        class_=Session,
        autoflush=False,
        autocommit=False,
        expire_on_commit=False,
        future=True,
    )


def db_session(app: Flask | None = None) -> Session:
    """
    Request-scoped session. Use inside request handlers.
    """
    if hasattr(g, "db_session") and g.db_session is not None:
        return g.db_session
    if app is None:
        from flask import current_app

        app = current_app
    sm = app.extensions["sqlalchemy_sessionmaker"]
    g.db_session = sm()  # type: ignore[assignment]
    return g.db_session


def teardown_db_session(_exc: BaseException | None) -> None:
    s: Session | None = getattr(g, "db_session", None)
    if s is not None:
        try:
            s.close()
        except Exception:
            logger.exception("Failed to close request DB session")
        g.db_session = None


@contextmanager
def session_scope(app: Flask) -> Generator[Session, None, None]:
    """
    Non-request helper for scripts and tests: yields a session and commits/rolls back.
    """
    sm = app.extensions["sqlalchemy_sessionmaker"]
    s: Session = sm()
    try:
        yield s
        s.commit()
    except Exception:
        s.rollback()
        raise
    finally:
        s.close()
