"""
tests/test_scanner.py — Inactivity Scanner
===========================================

Covers exemptions, backfill of pre-existing members, the threshold
boundary and scan idempotence.
"""

from __future__ import annotations

from datetime import timedelta

from vigil.engine.exemptions import ExemptionRegistry
from vigil.engine.ledger import ActivityLedger
from vigil.engine.membership import MembershipSnapshot, MemberView
from vigil.engine.scanner import InactivityScanner

GUILD = 1


def _scanner(clock, threshold=timedelta(hours=48), users=(), roles=()):
    ledger = ActivityLedger(clock=clock)
    registry = ExemptionRegistry(users, roles)
    return ledger, InactivityScanner(ledger, registry, threshold, clock=clock)


def _snapshot(*members, complete=True):
    return MembershipSnapshot(guild_id=GUILD, members=members, complete=complete)


class TestClassification:
    def test_ten_second_threshold(self, clock):
        ledger, scanner = _scanner(clock, threshold=timedelta(seconds=10))
        alice, bob = MemberView(1, "alice"), MemberView(2, "bob")
        ledger.record_activity(GUILD, 1)
        clock.advance(seconds=5)
        ledger.record_activity(GUILD, 2)
        clock.advance(seconds=7)  # alice silent 12 s, bob 7 s

        report = scanner.scan(_snapshot(alice, bob))
        assert report.inactive_ids == [1]
        assert report.inactive[0].inactive_for == timedelta(seconds=12)

    def test_exactly_at_threshold_is_active(self, clock):
        ledger, scanner = _scanner(clock, threshold=timedelta(seconds=10))
        ledger.record_activity(GUILD, 1)
        clock.advance(seconds=10)
        assert scanner.scan(_snapshot(MemberView(1, "edge"))).inactive == []

    def test_exempt_members_never_returned(self, clock):
        ledger, scanner = _scanner(clock, users=[1], roles=[99])
        members = [
            MemberView(1, "exempt-user"),
            MemberView(2, "exempt-role", role_ids=frozenset({99})),
            MemberView(3, "owner", is_owner=True),
            MemberView(4, "admin", is_admin=True),
        ]
        for m in members:
            ledger.record_activity(GUILD, m.member_id)
        clock.advance(days=30)

        report = scanner.scan(_snapshot(*members))
        assert report.inactive == []
        assert report.exempt == 4

    def test_bots_are_skipped(self, clock):
        ledger, scanner = _scanner(clock)
        ledger.record_activity(GUILD, 5)
        clock.advance(days=30)
        report = scanner.scan(_snapshot(MemberView(5, "robot", is_bot=True)))
        assert report.inactive == []
        assert report.checked == 0


class TestBackfill:
    def test_old_untracked_member_is_backfilled_not_evicted(self, clock):
        ledger, scanner = _scanner(clock)
        veteran = MemberView(7, "veteran", account_created_at=clock.now - timedelta(days=400))

        report = scanner.scan(_snapshot(veteran))
        assert report.inactive == []
        assert report.backfilled == 1
        assert ledger.last_active_at(GUILD, 7) == clock.now

    def test_young_account_is_not_backfilled(self, clock):
        ledger, scanner = _scanner(clock)
        fresh = MemberView(8, "fresh", account_created_at=clock.now - timedelta(hours=1))
        report = scanner.scan(_snapshot(fresh))
        assert report.backfilled == 0
        assert ledger.last_active_at(GUILD, 8) is None

    def test_unknown_creation_date_is_backfilled(self, clock):
        ledger, scanner = _scanner(clock)
        scanner.scan(_snapshot(MemberView(9, "mystery")))
        assert ledger.last_active_at(GUILD, 9) == clock.now

    def test_scan_is_idempotent(self, clock):
        ledger, scanner = _scanner(clock)
        members = [
            MemberView(1, "old", account_created_at=clock.now - timedelta(days=90)),
            MemberView(2, "quiet"),
        ]
        ledger.record_activity(GUILD, 2)
        clock.advance(days=3)

        first = scanner.scan(_snapshot(*members))
        second = scanner.scan(_snapshot(*members))
        assert first.inactive_ids == second.inactive_ids == [2]
        assert second.backfilled == 0


def test_partial_snapshot_is_reported(clock):
    _, scanner = _scanner(clock)
    report = scanner.scan(_snapshot(MemberView(1, "x"), complete=False))
    assert report.snapshot_complete is False
