"""
Connections to tenant databases.

Engines are built from the tenant's credentials bundle (read from the secret
store) on first use and disposed when the process shuts down.
"""
import logging
import os
import threading
from contextlib import contextmanager
from typing import Dict, Iterator

from sqlalchemy.engine import URL, Engine
from sqlalchemy.orm import Session, sessionmaker

from ..database import TenantBase, build_engine
from .naming import secret_name
from .secrets import SecretBundle, SecretStore

logger = logging.getLogger(__name__)


def tenant_database_url(bundle: SecretBundle) -> str:
    """
    Build a SQLAlchemy URL from a credentials bundle.

    Args:
        bundle: Tenant credentials

    Returns:
        str: Connection string for the tenant's own role
    """
    if bundle.engine == "sqlite":
        return f"sqlite:///{os.path.join(bundle.host, bundle.database_name)}.db"
    url = URL.create(
        "postgresql+psycopg2",
        username=bundle.username,
        password=bundle.password,
        host=bundle.host,
        port=bundle.port,
        database=bundle.database_name,
    )
    return url.render_as_string(hide_password=False)


class TenantDatabases:
    """Per-tenant engine registry."""

    def __init__(self, secret_store: SecretStore, timeout_seconds: int = 10):
        self._secrets = secret_store
        self._timeout = timeout_seconds
        self._engines: Dict[str, Engine] = {}
        self._lock = threading.Lock()

    def engine_for(self, slug: str) -> Engine:
        engine = self._engines.get(slug)
        if engine is not None:
            return engine

        # Secret lookup happens outside the lock; a duplicate engine built by a
        # concurrent caller is disposed below.
        bundle = self._secrets.get_secret(secret_name(slug))
        candidate = build_engine(tenant_database_url(bundle), self._timeout)
        with self._lock:
            engine = self._engines.setdefault(slug, candidate)
        if engine is not candidate:
            candidate.dispose()
        else:
            logger.info(f"Opened connection pool for tenant {slug}")
        return engine

    @contextmanager
    def session(self, slug: str) -> Iterator[Session]:
        """
        Open a session on a tenant database.

        Yields:
            Session: Closed automatically on exit
        """
        factory = sessionmaker(bind=self.engine_for(slug), autoflush=False, autocommit=False)
        db = factory()
        try:
            yield db
        finally:
            db.close()

    def initialize_schema(self, bundle: SecretBundle) -> None:
        """Create the tenant tables in a freshly provisioned database."""
        engine = build_engine(tenant_database_url(bundle), self._timeout)
        try:
            TenantBase.metadata.create_all(bind=engine)
        finally:
            engine.dispose()
        logger.info(f"Initialized schema in {bundle.database_name}")

    def close(self) -> None:
        with self._lock:
            engines = list(self._engines.items())
            self._engines.clear()
        for slug, engine in engines:
            engine.dispose()
            logger.info(f"Closed connection pool for tenant {slug}")
