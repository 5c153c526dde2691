"""
Unit tests for engine setup: SQLite engines hand transaction control to SQLAlchemy.
"""
import pytest
from sqlalchemy import create_engine, insert
from sqlalchemy.orm import sessionmaker

from pipeline_analytics import database
from pipeline_analytics.database import Base, configure_sqlite_transactions
from pipeline_analytics.models.daily_metric import DailyMetricRecord


def _seed(session, actor_id):
    session.execute(insert(DailyMetricRecord.__table__).values(
        tenant_id="t", date="2025-02-05", actor_id=actor_id, dials=1,
    ))


class TestSqliteTransactions:
    def test_app_engine_is_configured_for_sqlite(self):
        if not database.DATABASE_URL.startswith("sqlite"):
            pytest.skip("application engine is not SQLite")

        with database.engine.connect() as conn:
            assert conn.connection.dbapi_connection.isolation_level is None

    def test_savepoint_rollback_keeps_outer_work(self, tmp_path):
        engine = configure_sqlite_transactions(create_engine(f"sqlite:///{tmp_path / 'savepoints.db'}"))
        Base.metadata.create_all(bind=engine)
        session = sessionmaker(bind=engine)()

        _seed(session, "rep-a")
        with pytest.raises(RuntimeError):
            with session.begin_nested():
                _seed(session, "rep-b")
                raise RuntimeError("abandon nested work")
        session.commit()

        assert [r.actor_id for r in session.query(DailyMetricRecord).all()] == ["rep-a"]
        session.close()
        engine.dispose()
