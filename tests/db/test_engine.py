"""Engine construction and session_scope."""

from uuid import uuid4

import pytest
from sqlalchemy import select, text
from sqlalchemy.pool import StaticPool

from pharmacy_kernel.db.engine import build_engine, session_scope
from pharmacy_kernel.models.tenant import Tenant


class TestBuildEngine:
    def test_in_memory_sqlite_shares_one_connection(self):
        engine = build_engine("sqlite://")
        try:
            assert isinstance(engine.pool, StaticPool)
        finally:
            engine.dispose()

    def test_file_sqlite_enforces_foreign_keys(self, tmp_path):
        engine = build_engine(f"sqlite:///{tmp_path / 'fk.db'}")
        try:
            assert not isinstance(engine.pool, StaticPool)
            with engine.connect() as conn:
                assert conn.execute(text("PRAGMA foreign_keys")).scalar_one() == 1
        finally:
            engine.dispose()


class TestSessionScope:
    def test_rolls_back_on_exception(self, db_tables, test_actor_id):
        code = f"SCOPE-{uuid4().hex[:8]}"

        with pytest.raises(RuntimeError):
            with session_scope() as sess:
                sess.add(Tenant(id=uuid4(), code=code, name="Scratch", created_by_id=test_actor_id))
                sess.flush()
                raise RuntimeError("abort")

        with session_scope() as sess:
            assert sess.execute(select(Tenant).where(Tenant.code == code)).first() is None

    def test_commits_on_success(self, db_tables, test_actor_id):
        code = f"SCOPE-{uuid4().hex[:8]}"

        with session_scope() as sess:
            sess.add(Tenant(id=uuid4(), code=code, name="Scratch", created_by_id=test_actor_id))

        with session_scope() as sess:
            tenant = sess.execute(select(Tenant).where(Tenant.code == code)).scalar_one()
            sess.delete(tenant)
