"""
tests/test_state_store.py — Durable state round-trips on SQLite
================================================================
"""

from __future__ import annotations

from unittest.mock import patch

import pytest
from sqlalchemy import text
from sqlalchemy.exc import OperationalError

from vigil.constants import from_epoch_ms, to_epoch_ms
from vigil.database.engine import get_session
from vigil.database.models import MemberActivity, MemberLevel
from vigil.engine.leveling import LevelRecord
from vigil.services.state_store import PersistenceError


class TestActivity:
    def test_save_and_load(self, store, clock):
        written = store.save_activity({(1, 10): clock.now, (2, 10): clock.now})
        assert written == 2
        assert store.load_activity() == {(1, 10): clock.now, (2, 10): clock.now}

    def test_upsert_and_delete(self, store, clock):
        store.save_activity({(1, 10): clock.now, (1, 11): clock.now})
        later = clock.advance(hours=1)
        store.save_activity({(1, 10): later}, deletions=[(1, 11)])
        assert store.load_activity() == {(1, 10): later}

    def test_nothing_to_write(self, store):
        assert store.save_activity({}) == 0

    def test_epoch_ms_round_trip(self, clock):
        assert from_epoch_ms(to_epoch_ms(clock.now)) == clock.now
        assert from_epoch_ms(str(to_epoch_ms(clock.now))) == clock.now

    def test_unreadable_rows_skipped(self, store, db_engine, clock):
        with get_session(db_engine) as session:
            session.add(MemberActivity(guild_id=1, user_id=10, last_active_ms=to_epoch_ms(clock.now)))
            session.add(MemberActivity(guild_id=1, user_id=11, last_active_ms=10**17))
        assert store.load_activity() == {(1, 10): clock.now}


class TestExemptions:
    def test_add_and_remove(self, store):
        store.set_exempt_user(10, True)
        store.set_exempt_user(10, True)  # idempotent
        store.set_exempt_role(50, True)
        assert store.load_exempt_users() == {10}
        assert store.load_exempt_roles() == {50}

        store.set_exempt_user(10, False)
        store.set_exempt_role(50, False)
        assert store.load_exempt_users() == set()
        assert store.load_exempt_roles() == set()

    def test_write_failure_raises_persistence_error(self, store):
        with patch(
            "vigil.services.state_store.get_session",
            side_effect=OperationalError("INSERT", {}, Exception("disk I/O error")),
        ):
            with pytest.raises(PersistenceError):
                store.set_exempt_user(10, True)


class TestLevels:
    def test_save_and_load(self, store):
        store.save_levels([LevelRecord(1, 10, 3, 5)])
        store.save_levels([LevelRecord(1, 10, 3, 6)])
        assert store.load_levels() == [LevelRecord(1, 10, 3, 6)]

    def test_negative_counts_skipped(self, store, db_engine):
        with get_session(db_engine) as session:
            session.add(MemberLevel(guild_id=1, user_id=10, level=2, message_count=-4))
        assert store.load_levels() == []

    def test_level_channel_bind_and_clear(self, store):
        store.set_level_channel(1, 500)
        store.set_level_channel(1, 600)
        assert store.load_level_channels() == {1: 600}
        store.set_level_channel(1, None)
        assert store.load_level_channels() == {}


class TestLoadAll:
    def test_fresh_database_is_empty(self, store):
        state = store.load_all()
        assert state.activity == {}
        assert state.exempt_users == set()
        assert state.levels == []

    def test_unreadable_table_loads_empty(self, store, db_engine):
        store.set_exempt_user(10, True)
        with db_engine.begin() as conn:
            conn.execute(text("DROP TABLE member_activity"))
        state = store.load_all()
        assert state.activity == {}
        assert state.exempt_users == {10}
