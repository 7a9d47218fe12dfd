"""
Vigil — Inactivity Eviction & Engagement Leveling for Discord
==============================================================
Watches community activity, remembers when each member was last seen,
and periodically removes members who have gone silent for too long.
A small leveling ladder rewards message volume in one designated channel
per server.

Package layout::

    vigil/
    ├── config.py          # YAML → typed Python config
    ├── constants.py       # Default ladder, colours, time helpers
    ├── database/
    │   ├── engine.py      # SQLAlchemy engine + async helper
    │   └── models.py      # The five persisted tables
    ├── engine/
    │   ├── events.py      # Gateway event envelopes
    │   ├── membership.py  # MemberView + MembershipSnapshot
    │   ├── ledger.py      # Activity Ledger (member → last seen)
    │   ├── exemptions.py  # Exemption Registry
    │   ├── scanner.py     # Inactivity Scanner
    │   └── leveling.py    # Engagement Leveling Engine
    ├── services/
    │   ├── state_store.py       # Load/save of every table
    │   ├── eviction_service.py  # Rate-limited eviction executor
    │   ├── ingestion_service.py # Event queue → ledger / leveling
    │   ├── core_service.py      # VigilCore — the context object
    │   ├── embeds.py            # Discord embed builders
    │   └── announcement_service.py  # Best-effort notifications
    ├── bot/
    │   ├── core.py        # Bot subclass, cog loader
    │   ├── gateway.py     # discord.py → snapshot / removal adapters
    │   └── cogs/
    │       ├── activity.py  # on_message / voice / join capture
    │       ├── admin.py     # /inactive command group
    │       ├── levels.py    # /level, /leaderboard, /set-level-channel
    │       └── tasks.py     # Periodic scan + flush loops
    └── api/
        ├── main.py        # FastAPI status probe
        └── routes/        # /health, /status, /stats, /keep-alive
"""

__version__ = "0.1.0"
