import sys
from pathlib import Path

import pytest
import sqlalchemy as sa
from sqlalchemy.orm import scoped_session, sessionmaker
from alembic import command
from alembic.config import Config as AlembicConfig

ROOT = Path(__file__).resolve().parents[2]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from autogift import create_app
from autogift.core.intelligence.constants import EngineSettings
from autogift.core.intelligence.engine import IntelligenceEngine
from autogift.core.intelligence.intelligence_cache import NullIntelligenceCache
from autogift.core.intelligence.telemetry import ScanTelemetry
from autogift.core.users.models import User
from autogift.extensions import db
from autogift.tests.fakes import FIXED_NOW, FakeBackend


# ==================== Pytest Markers ====================
def pytest_configure(config):
    """Register custom pytest markers."""
    config.addinivalue_line("markers", "unit: Unit tests (no external dependencies)")
    config.addinivalue_line("markers", "integration: Integration tests (database, API)")
    config.addinivalue_line("markers", "slow: Slow running tests")


def _alembic_config() -> AlembicConfig:
    cfg = AlembicConfig(str(ROOT / "autogift" / "migrations" / "alembic.ini"))
    cfg.set_main_option("script_location", str(ROOT / "autogift" / "migrations"))
    cfg.set_main_option("autogift_env", "testing")
    return cfg


@pytest.fixture(scope="session", autouse=True)
def migrated_db():
    """Apply migrations once per session to mirror production schema."""
    cfg = _alembic_config()
    command.upgrade(cfg, "head")
    yield
    command.downgrade(cfg, "base")


@pytest.fixture()
def app(migrated_db):
    """
    Create a per-test app with an isolated database transaction.

    Each test runs inside a transaction + savepoint so committed rows roll back
    afterwards.
    """
    app = create_app("testing")
    ctx = app.app_context()
    ctx.push()

    engine = db.engine
    if engine.dialect.name == "sqlite":
        # pysqlite defers BEGIN and mishandles SAVEPOINT; let SQLAlchemy drive
        # transactions so the per-test rollback actually discards rows.
        @sa.event.listens_for(engine, "connect")
        def _sqlite_connect(dbapi_connection, connection_record):
            dbapi_connection.isolation_level = None

        @sa.event.listens_for(engine, "begin")
        def _sqlite_begin(conn):
            conn.exec_driver_sql("BEGIN")

    connection = engine.connect()
    transaction = connection.begin()

    original_session = db.session
    session_factory = scoped_session(sessionmaker(bind=connection))
    db.session = session_factory
    session = session_factory()
    session.begin_nested()

    @sa.event.listens_for(session, "after_transaction_end")
    def restart_savepoint(sess, trans):
        if trans.nested and not trans._parent.nested:
            sess.begin_nested()

    try:
        yield app
    finally:
        sa.event.remove(session, "after_transaction_end", restart_savepoint)
        session_factory.remove()
        db.session = original_session
        transaction.rollback()
        connection.close()
        ctx.pop()


@pytest.fixture()
def client(app):
    return app.test_client()


@pytest.fixture()
def make_user(app):
    counter = {"n": 0}

    def _make(name: str = "user") -> User:
        counter["n"] += 1
        user = User(email=f"{name}-{counter['n']}@example.com", display_name=name.title())
        db.session.add(user)
        db.session.commit()
        return user

    return _make


# ==================== Engine over in-memory stores ====================


@pytest.fixture()
def fixed_clock():
    return lambda: FIXED_NOW


@pytest.fixture()
def backend():
    return FakeBackend()


@pytest.fixture()
def telemetry():
    return ScanTelemetry()


@pytest.fixture()
def engine_factory(backend, fixed_clock, telemetry):
    def _build(**overrides) -> IntelligenceEngine:
        settings = EngineSettings(**{"cache_backend": "none", "scan_max_workers": 1, **overrides})
        return IntelligenceEngine(
            backend.stores(),
            settings=settings,
            cache=NullIntelligenceCache(clock=fixed_clock),
            clock=fixed_clock,
            telemetry=telemetry,
        )

    return _build


@pytest.fixture()
def engine(engine_factory):
    return engine_factory()
