"""
tests/test_eviction_service.py — Rate-limited eviction executor
================================================================
"""

from __future__ import annotations

import asyncio
from datetime import timedelta
from unittest.mock import AsyncMock

from vigil.engine.ledger import ActivityLedger
from vigil.engine.membership import MemberView
from vigil.engine.scanner import InactiveMember
from vigil.services.eviction_service import EvictionExecutor

GUILD = 1


# Helper to run async tests without pytest-asyncio
def run_async(coro):
    """Run an async coroutine in a new event loop."""
    return asyncio.get_event_loop_policy().new_event_loop().run_until_complete(coro)


def _inactive(ledger, clock, *member_ids):
    entries = []
    for member_id in member_ids:
        ledger.record_activity(GUILD, member_id)
        entries.append(InactiveMember(
            member=MemberView(member_id, f"member-{member_id}"),
            last_active_at=clock.now,
            inactive_for=timedelta(days=3),
        ))
    return entries


class TestEvictionBatch:
    def test_second_of_three_fails(self, clock, remover):
        ledger = ActivityLedger(clock=clock)
        remover.failing = {2}
        sleep = AsyncMock()
        executor = EvictionExecutor(ledger, remover, delay_seconds=1.0, reason="idle", sleep=sleep)

        report = run_async(executor.evict(GUILD, _inactive(ledger, clock, 1, 2, 3)))

        assert [e.member.member_id for e in report.evicted] == [1, 3]
        assert [f.entry.member.member_id for f in report.failures] == [2]
        assert report.failures[0].error == "Missing Permissions"
        assert remover.attempts == [1, 2, 3]
        assert [call.args for call in sleep.await_args_list] == [(1.0,), (1.0,)]
        # Evicted members leave the ledger; the failed one stays tracked.
        assert ledger.last_active_at(GUILD, 1) is None
        assert ledger.last_active_at(GUILD, 2) is not None
        assert ledger.last_active_at(GUILD, 3) is None

    def test_reason_passed_through(self, clock, remover):
        ledger = ActivityLedger(clock=clock)
        executor = EvictionExecutor(ledger, remover, delay_seconds=0, reason="Inactive for 48h")
        run_async(executor.evict(GUILD, _inactive(ledger, clock, 7)))
        assert remover.removed == [(GUILD, 7, "Inactive for 48h")]

    def test_empty_batch(self, clock, remover):
        executor = EvictionExecutor(ActivityLedger(clock=clock), remover)
        report = run_async(executor.evict(GUILD, []))
        assert report.total_checked == 0

    def test_unexpected_exception_is_isolated(self, clock):
        ledger = ActivityLedger(clock=clock)
        remover = AsyncMock()
        remover.remove_member.side_effect = [RuntimeError(), None]
        executor = EvictionExecutor(ledger, remover, delay_seconds=0)
        report = run_async(executor.evict(GUILD, _inactive(ledger, clock, 1, 2)))
        assert report.failures[0].error == "RuntimeError"
        assert len(report.evicted) == 1
