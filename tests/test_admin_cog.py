"""
tests/test_admin_cog.py — /inactive and leveling command handlers
==================================================================

Invokes the command callbacks directly with mocked interactions; the
core underneath is real (in-memory SQLite, fake gateway).
"""

from __future__ import annotations

import asyncio
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock, patch

from vigil.bot.cogs.admin import SAVE_FAILED, InactivityAdmin
from vigil.bot.cogs.levels import Levels
from vigil.engine.membership import MembershipSnapshot, MemberView
from vigil.services.state_store import PersistenceError

GUILD = 1


# Helper to run async tests without pytest-asyncio
def run_async(coro):
    """Run an async coroutine in a new event loop."""
    return asyncio.get_event_loop_policy().new_event_loop().run_until_complete(coro)


def _interaction(guild=None) -> MagicMock:
    interaction = MagicMock()
    interaction.guild = guild or _guild()
    interaction.guild_id = GUILD
    interaction.user = SimpleNamespace(id=1234, display_name="mod")
    interaction.response.send_message = AsyncMock()
    interaction.response.defer = AsyncMock()
    interaction.followup.send = AsyncMock()
    return interaction


def _guild(roles=()) -> MagicMock:
    guild = MagicMock()
    guild.id = GUILD
    guild.name = "Test Guild"
    guild.member_count = 4
    role_map = {r: SimpleNamespace(id=r) for r in roles}
    guild.get_role = lambda rid: role_map.get(rid)
    guild.get_member = MagicMock(return_value=None)
    return guild


def _bot(core) -> MagicMock:
    bot = MagicMock()
    bot.core = core
    bot.cfg = core.cfg
    return bot


def _sent_text(interaction) -> str:
    call = interaction.response.send_message.await_args
    return call.args[0] if call.args else ""


class TestExemptCommands:
    def test_exempt_member(self, make_core, store):
        cog = InactivityAdmin(_bot(make_core()))
        interaction = _interaction()
        member = SimpleNamespace(id=10, display_name="alice")

        run_async(cog.exempt.callback(cog, interaction, member))
        assert "added" in _sent_text(interaction)
        assert store.load_exempt_users() == {10}

    def test_exempt_accepts_user_who_left(self, make_core, store):
        cog = InactivityAdmin(_bot(make_core()))
        interaction = _interaction()
        departed = SimpleNamespace(id=11, display_name="gone")

        # A Member-only parameter would reject anything that is not a Member
        user = run_async(cog.exempt._params["user"].transform(interaction, departed))
        run_async(cog.exempt.callback(cog, interaction, user))
        assert store.load_exempt_users() == {11}

    def test_unexempt_unknown_user(self, make_core):
        cog = InactivityAdmin(_bot(make_core()))
        interaction = _interaction()
        user = SimpleNamespace(id=10, display_name="alice")

        run_async(cog.unexempt.callback(cog, interaction, user))
        assert "not on the exemption list" in _sent_text(interaction)

    def test_exempt_role_must_exist(self, make_core):
        core = make_core()
        cog = InactivityAdmin(_bot(core))
        interaction = _interaction(_guild(roles=()))
        role = SimpleNamespace(id=77, name="ghost")

        run_async(cog.exempt_role.callback(cog, interaction, role))
        assert "could not be found" in _sent_text(interaction)
        assert core.registry.role_ids == frozenset()

    def test_exempt_role(self, make_core):
        core = make_core()
        cog = InactivityAdmin(_bot(core))
        interaction = _interaction(_guild(roles=(77,)))
        role = SimpleNamespace(id=77, name="veterans")

        run_async(cog.exempt_role.callback(cog, interaction, role))
        assert core.registry.role_ids == frozenset({77})

    def test_save_failure_reported(self, make_core, store):
        core = make_core()
        cog = InactivityAdmin(_bot(core))
        interaction = _interaction()
        member = SimpleNamespace(id=10, display_name="alice")

        with patch.object(store, "set_exempt_user", side_effect=PersistenceError("locked")):
            run_async(cog.exempt.callback(cog, interaction, member))
        assert _sent_text(interaction) == SAVE_FAILED
        assert core.registry.user_ids == frozenset()


class TestInformationCommands:
    def test_check_lists_inactive(self, make_core, membership, clock):
        core = make_core()
        core.ledger.record_activity(GUILD, 1)
        clock.advance(days=3)
        membership.snapshots[GUILD] = MembershipSnapshot(
            guild_id=GUILD, members=(MemberView(1, "sleepy"),), captured_at=clock.now,
        )
        cog = InactivityAdmin(_bot(core))
        interaction = _interaction()

        run_async(cog.check.callback(cog, interaction))
        text = interaction.followup.send.await_args.args[0]
        assert "sleepy" in text
        assert "3.0 days" in text

    def test_evict_reports_count(self, make_core, membership, remover, clock):
        core = make_core()
        core.ledger.record_activity(GUILD, 1)
        clock.advance(days=3)
        membership.snapshots[GUILD] = MembershipSnapshot(
            guild_id=GUILD, members=(MemberView(1, "sleepy"),), captured_at=clock.now,
        )
        cog = InactivityAdmin(_bot(core))
        interaction = _interaction()

        run_async(cog.evict.callback(cog, interaction))
        assert "Removed **1**" in interaction.followup.send.await_args.args[0]
        assert [r[1] for r in remover.removed] == [1]

    def test_status_embed(self, make_core):
        cog = InactivityAdmin(_bot(make_core()))
        interaction = _interaction()
        run_async(cog.status.callback(cog, interaction))
        embed = interaction.followup.send.await_args.kwargs["embed"]
        assert "Members: 4" in embed.fields[0].value


class TestLevelCommands:
    def test_set_and_clear_level_channel(self, make_core, store):
        core = make_core()
        cog = Levels(_bot(core))
        channel = SimpleNamespace(id=500, mention="#levels")

        interaction = _interaction()
        run_async(cog.set_level_channel.callback(cog, interaction, channel))
        assert store.load_level_channels() == {GUILD: 500}

        interaction = _interaction()
        run_async(cog.clear_level_channel.callback(cog, interaction))
        assert "cleared" in _sent_text(interaction)
        assert store.load_level_channels() == {}

    def test_leaderboard(self, make_core):
        core = make_core()
        run_async(core.set_level_channel(GUILD, 500))
        for _ in range(3):
            core.leveling.record_message(GUILD, 500, 10)
        cog = Levels(_bot(core))
        interaction = _interaction()

        run_async(cog.leaderboard.callback(cog, interaction, 1))
        embed = interaction.response.send_message.await_args.kwargs["embed"]
        assert "<@10>" in embed.description
