"""
vigil.database.models — SQLAlchemy 2.0 Data Models
===================================================

Tables:
- member_activity  — Last qualifying activity per (guild, member), epoch ms
- exempt_users     — Members that are never evicted
- exempt_roles     — Roles whose holders are never evicted
- member_levels    — Message count + level per (guild, member)
- level_channels   — The one leveling channel bound to each guild

The in-memory engine objects are authoritative while the bot runs; these
tables are the durable copy written by :mod:`vigil.services.state_store`.
"""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import BigInteger, DateTime, Index, Integer, func
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


# ---------------------------------------------------------------------------
# Base
# ---------------------------------------------------------------------------
class Base(DeclarativeBase):
    """Shared base for all Vigil ORM models."""


# ---------------------------------------------------------------------------
# Activity — one row per member ever observed
# ---------------------------------------------------------------------------
class MemberActivity(Base):
    __tablename__ = "member_activity"

    guild_id: Mapped[int] = mapped_column(BigInteger, primary_key=True)
    user_id: Mapped[int] = mapped_column(BigInteger, primary_key=True)
    # Epoch milliseconds (UTC).  Integer rather than DateTime so SQLite and
    # PostgreSQL round-trip the exact same value.
    last_active_ms: Mapped[int] = mapped_column(BigInteger, nullable=False)

    def __repr__(self) -> str:
        return (
            f"<MemberActivity guild={self.guild_id} user={self.user_id} "
            f"at={self.last_active_ms}>"
        )


# ---------------------------------------------------------------------------
# Exemptions
# ---------------------------------------------------------------------------
class ExemptUser(Base):
    __tablename__ = "exempt_users"

    user_id: Mapped[int] = mapped_column(BigInteger, primary_key=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    def __repr__(self) -> str:
        return f"<ExemptUser user={self.user_id}>"


class ExemptRole(Base):
    __tablename__ = "exempt_roles"

    role_id: Mapped[int] = mapped_column(BigInteger, primary_key=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    def __repr__(self) -> str:
        return f"<ExemptRole role={self.role_id}>"


# ---------------------------------------------------------------------------
# Leveling
# ---------------------------------------------------------------------------
class MemberLevel(Base):
    __tablename__ = "member_levels"

    guild_id: Mapped[int] = mapped_column(BigInteger, primary_key=True)
    user_id: Mapped[int] = mapped_column(BigInteger, primary_key=True)
    level: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    message_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    __table_args__ = (
        Index("ix_member_levels_guild_rank", "guild_id", "level", "message_count"),
    )

    def __repr__(self) -> str:
        return (
            f"<MemberLevel guild={self.guild_id} user={self.user_id} "
            f"lvl={self.level} msgs={self.message_count}>"
        )


class LevelChannel(Base):
    __tablename__ = "level_channels"

    guild_id: Mapped[int] = mapped_column(BigInteger, primary_key=True)
    channel_id: Mapped[int] = mapped_column(BigInteger, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    def __repr__(self) -> str:
        return f"<LevelChannel guild={self.guild_id} channel={self.channel_id}>"
