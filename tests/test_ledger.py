"""
tests/test_ledger.py — Activity Ledger & Exemption Registry
============================================================
"""

from __future__ import annotations

from datetime import timedelta

from vigil.engine.exemptions import ExemptionReason, ExemptionRegistry
from vigil.engine.ledger import ActivityLedger
from vigil.engine.membership import MemberView

GUILD = 1


class TestActivityLedger:
    def test_record_stamps_now(self, clock):
        ledger = ActivityLedger(clock=clock)
        assert ledger.record_activity(GUILD, 10) == clock.now
        assert ledger.last_active_at(GUILD, 10) == clock.now
        assert (GUILD, 10) in ledger

    def test_never_moves_backwards(self, clock):
        ledger = ActivityLedger(clock=clock)
        later = clock.advance(hours=1)
        ledger.record_activity(GUILD, 10)
        clock.advance(minutes=-30)  # clock stepped back
        assert ledger.record_activity(GUILD, 10) == later
        assert ledger.last_active_at(GUILD, 10) == later

    def test_keyed_per_guild(self, clock):
        ledger = ActivityLedger(clock=clock)
        ledger.record_activity(1, 10)
        assert ledger.last_active_at(2, 10) is None
        assert ledger.last_active_at(1, 10) is not None

    def test_time_since_activity(self, clock):
        ledger = ActivityLedger(clock=clock)
        ledger.record_activity(GUILD, 10)
        clock.advance(seconds=15)
        assert ledger.time_since_activity(GUILD, 10) == timedelta(seconds=15)
        assert ledger.time_since_activity(GUILD, 99) is None

    def test_count_inactive(self, clock):
        ledger = ActivityLedger(clock=clock)
        ledger.record_activity(1, 10)
        ledger.record_activity(2, 11)
        clock.advance(hours=3)
        ledger.record_activity(1, 12)
        assert ledger.count_inactive(timedelta(hours=2)) == 2
        assert ledger.count_inactive(timedelta(hours=2), guild_id=1) == 1

    def test_take_dirty_clears(self, clock):
        ledger = ActivityLedger(clock=clock)
        ledger.record_activity(GUILD, 10)
        upserts, deletions = ledger.take_dirty()
        assert upserts == {(GUILD, 10): clock.now}
        assert deletions == set()
        assert not ledger.dirty

    def test_forget_becomes_deletion(self, clock):
        ledger = ActivityLedger({(GUILD, 10): clock.now}, clock=clock)
        assert ledger.forget(GUILD, 10) is True
        assert ledger.forget(GUILD, 10) is False
        assert ledger.take_dirty() == ({}, {(GUILD, 10)})

    def test_restore_dirty_keeps_newer_state(self, clock):
        ledger = ActivityLedger(clock=clock)
        ledger.record_activity(GUILD, 10)
        ledger.record_activity(GUILD, 11)
        upserts, deletions = ledger.take_dirty()
        ledger.forget(GUILD, 11)  # evicted while the write was in flight
        ledger.restore_dirty(upserts, deletions)
        assert ledger.take_dirty() == ({(GUILD, 10): clock.now}, {(GUILD, 11)})

    def test_loaded_records_are_clean(self, clock):
        ledger = ActivityLedger({(GUILD, 10): clock.now}, clock=clock)
        assert len(ledger) == 1
        assert not ledger.dirty


class TestExemptionRegistry:
    def test_rules_in_order(self):
        registry = ExemptionRegistry(user_ids=[1], role_ids=[50])
        assert registry.exemption_reason(MemberView(1, "u", is_admin=True)) is ExemptionReason.USER
        assert registry.exemption_reason(MemberView(2, "r", role_ids=frozenset({50}))) is ExemptionReason.ROLE
        assert registry.exemption_reason(MemberView(3, "o", is_owner=True)) is ExemptionReason.OWNER
        assert registry.exemption_reason(MemberView(4, "a", is_admin=True)) is ExemptionReason.ADMIN
        assert registry.exemption_reason(MemberView(5, "plain")) is None

    def test_mutations_report_change(self):
        registry = ExemptionRegistry()
        assert registry.add_user(1) is True
        assert registry.add_user(1) is False
        assert registry.remove_user(1) is True
        assert registry.remove_user(1) is False
        assert registry.add_role(7) is True
        assert registry.role_ids == frozenset({7})
        assert registry.remove_role(7) is True
        assert registry.user_ids == frozenset()
