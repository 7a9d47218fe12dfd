"""
vigil.services.state_store — Durable State for the Core
=========================================================

Loads and saves the five Vigil tables.  Every method is synchronous;
async callers go through :func:`~vigil.database.engine.run_db`.

Loading is forgiving: a missing table is created by ``init_db``, an
unreadable table loads as empty (logged), and individual rows that fail
validation (negative counts, unparsable instants) are skipped.  Writes,
on the other hand, raise :class:`PersistenceError` so the caller can roll
back its in-memory change or re-mark the data dirty.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from datetime import datetime

from sqlalchemy import Engine, delete, select
from sqlalchemy.exc import SQLAlchemyError

from vigil.constants import from_epoch_ms, to_epoch_ms
from vigil.database.engine import get_session
from vigil.database.models import (
    ExemptRole,
    ExemptUser,
    LevelChannel,
    MemberActivity,
    MemberLevel,
)
from vigil.engine.leveling import LevelRecord

logger = logging.getLogger(__name__)

MemberKey = tuple[int, int]


class PersistenceError(RuntimeError):
    """A write to the state database failed."""


@dataclass
class LoadedState:
    """Everything read from the database at startup."""

    activity: dict[MemberKey, datetime] = field(default_factory=dict)
    exempt_users: set[int] = field(default_factory=set)
    exempt_roles: set[int] = field(default_factory=set)
    levels: list[LevelRecord] = field(default_factory=list)
    level_channels: dict[int, int] = field(default_factory=dict)


class StateStore:
    """Thin repository over the SQLAlchemy engine."""

    def __init__(self, engine: Engine) -> None:
        self.engine = engine

    # -------------------------------------------------------------------
    # Startup
    # -------------------------------------------------------------------
    def load_all(self) -> LoadedState:
        state = LoadedState(
            activity=self._load_or_empty("member_activity", self.load_activity, dict),
            exempt_users=self._load_or_empty("exempt_users", self.load_exempt_users, set),
            exempt_roles=self._load_or_empty("exempt_roles", self.load_exempt_roles, set),
            levels=self._load_or_empty("member_levels", self.load_levels, list),
            level_channels=self._load_or_empty("level_channels", self.load_level_channels, dict),
        )
        logger.info(
            "State loaded: %d activity records, %d exempt users, %d exempt roles, "
            "%d level records, %d level channels",
            len(state.activity), len(state.exempt_users), len(state.exempt_roles),
            len(state.levels), len(state.level_channels),
        )
        return state

    @staticmethod
    def _load_or_empty(name, loader, empty):
        try:
            return loader()
        except SQLAlchemyError:
            logger.exception("Could not read %s — starting with an empty table", name)
            return empty()

    def load_activity(self) -> dict[MemberKey, datetime]:
        records: dict[MemberKey, datetime] = {}
        with get_session(self.engine) as session:
            for row in session.scalars(select(MemberActivity)):
                try:
                    records[(row.guild_id, row.user_id)] = from_epoch_ms(row.last_active_ms)
                except (TypeError, ValueError, OverflowError, OSError):
                    logger.warning(
                        "Skipping unreadable activity row guild=%s user=%s value=%r",
                        row.guild_id, row.user_id, row.last_active_ms,
                    )
        return records

    def load_exempt_users(self) -> set[int]:
        with get_session(self.engine) as session:
            return set(session.scalars(select(ExemptUser.user_id)))

    def load_exempt_roles(self) -> set[int]:
        with get_session(self.engine) as session:
            return set(session.scalars(select(ExemptRole.role_id)))

    def load_levels(self) -> list[LevelRecord]:
        records: list[LevelRecord] = []
        with get_session(self.engine) as session:
            for row in session.scalars(select(MemberLevel)):
                if row.message_count is None or row.message_count < 0:
                    logger.warning(
                        "Skipping level row with invalid count guild=%s user=%s count=%r",
                        row.guild_id, row.user_id, row.message_count,
                    )
                    continue
                records.append(LevelRecord(
                    guild_id=row.guild_id,
                    member_id=row.user_id,
                    level=row.level or 1,
                    message_count=row.message_count,
                ))
        return records

    def load_level_channels(self) -> dict[int, int]:
        with get_session(self.engine) as session:
            return {
                row.guild_id: row.channel_id
                for row in session.scalars(select(LevelChannel))
            }

    # -------------------------------------------------------------------
    # Activity
    # -------------------------------------------------------------------
    def save_activity(
        self,
        upserts: Mapping[MemberKey, datetime],
        deletions: Iterable[MemberKey] = (),
    ) -> int:
        """Write changed activity rows and delete evicted ones.

        Returns the number of rows touched.
        """
        deletions = list(deletions)
        if not upserts and not deletions:
            return 0
        try:
            with get_session(self.engine) as session:
                for (guild_id, user_id), moment in upserts.items():
                    session.merge(MemberActivity(
                        guild_id=guild_id,
                        user_id=user_id,
                        last_active_ms=to_epoch_ms(moment),
                    ))
                for guild_id, user_id in deletions:
                    session.execute(
                        delete(MemberActivity).where(
                            MemberActivity.guild_id == guild_id,
                            MemberActivity.user_id == user_id,
                        )
                    )
        except SQLAlchemyError as exc:
            raise PersistenceError(f"activity write failed: {exc}") from exc
        return len(upserts) + len(deletions)

    # -------------------------------------------------------------------
    # Exemptions
    # -------------------------------------------------------------------
    def set_exempt_user(self, user_id: int, exempt: bool) -> None:
        try:
            with get_session(self.engine) as session:
                if exempt:
                    session.merge(ExemptUser(user_id=user_id))
                else:
                    session.execute(delete(ExemptUser).where(ExemptUser.user_id == user_id))
        except SQLAlchemyError as exc:
            raise PersistenceError(f"exempt user {user_id}: {exc}") from exc

    def set_exempt_role(self, role_id: int, exempt: bool) -> None:
        try:
            with get_session(self.engine) as session:
                if exempt:
                    session.merge(ExemptRole(role_id=role_id))
                else:
                    session.execute(delete(ExemptRole).where(ExemptRole.role_id == role_id))
        except SQLAlchemyError as exc:
            raise PersistenceError(f"exempt role {role_id}: {exc}") from exc

    # -------------------------------------------------------------------
    # Leveling
    # -------------------------------------------------------------------
    def save_levels(self, records: Iterable[LevelRecord]) -> int:
        records = list(records)
        if not records:
            return 0
        try:
            with get_session(self.engine) as session:
                for record in records:
                    session.merge(MemberLevel(
                        guild_id=record.guild_id,
                        user_id=record.member_id,
                        level=record.level,
                        message_count=record.message_count,
                    ))
        except SQLAlchemyError as exc:
            raise PersistenceError(f"level write failed: {exc}") from exc
        return len(records)

    def set_level_channel(self, guild_id: int, channel_id: int | None) -> None:
        """Bind (or with ``None`` unbind) the leveling channel of a guild."""
        try:
            with get_session(self.engine) as session:
                if channel_id is None:
                    session.execute(
                        delete(LevelChannel).where(LevelChannel.guild_id == guild_id)
                    )
                else:
                    session.merge(LevelChannel(guild_id=guild_id, channel_id=channel_id))
        except SQLAlchemyError as exc:
            raise PersistenceError(f"level channel for guild {guild_id}: {exc}") from exc
