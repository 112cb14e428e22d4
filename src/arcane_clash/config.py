"""Runtime configuration read from environment variables."""
from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Optional

from .models import GameMode

_TRUTHY = {"1", "true", "yes", "on"}


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in _TRUTHY


def _env_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None or not value.strip():
        return default
    return int(value)


def _env_float(name: str, default: float) -> float:
    value = os.getenv(name)
    if value is None or not value.strip():
        return default
    return float(value)


def build_postgres_dsn() -> str:
    """Build PostgreSQL DSN from environment variables.

    Reads the following environment variables:
    - PGHOST (default: localhost)
    - PGPORT (default: 5432)
    - PGUSER (default: postgres)
    - PGPASSWORD (default: postgres)
    - PGDATABASE (default: arcane_clash)

    Returns:
        PostgreSQL connection string in libpq format.
    """
    host = os.getenv("PGHOST", "localhost")
    port = os.getenv("PGPORT", "5432")
    user = os.getenv("PGUSER", "postgres")
    password = os.getenv("PGPASSWORD", "postgres")
    database = os.getenv("PGDATABASE", "arcane_clash")

    return f"host={host} port={port} user={user} password={password} dbname={database}"


@dataclass(frozen=True)
class Settings:
    """Tunable game and collaborator settings.

    ``catalog_dsn`` selects the PostgreSQL catalog; when it is ``None`` the
    bundled card list is served from memory.
    """

    mode: GameMode = GameMode.CLASH
    roll_stats: bool = False
    generate_assets: bool = False
    generation_timeout: float = 30.0
    combat_delay: float = 1.5
    max_spells_per_turn: int = 2
    mulligan_size: int = 2
    max_rounds: int = 50
    catalog_dsn: Optional[str] = None
    llm_provider: str = "openai"
    llm_model: Optional[str] = None

    @classmethod
    def from_env(cls) -> "Settings":
        """Build settings from ``ARCANE_*`` variables.

        ``ARCANE_USE_POSTGRES=1`` enables the PostgreSQL catalog using
        :func:`build_postgres_dsn` unless ``ARCANE_CATALOG_DSN`` is given.
        """
        dsn = os.getenv("ARCANE_CATALOG_DSN")
        if dsn is None and _env_bool("ARCANE_USE_POSTGRES", False):
            dsn = build_postgres_dsn()
        return cls(
            mode=GameMode(os.getenv("ARCANE_GAME_MODE", GameMode.CLASH.value)),
            roll_stats=_env_bool("ARCANE_ROLL_STATS", False),
            generate_assets=_env_bool("ARCANE_GENERATE_ASSETS", False),
            generation_timeout=_env_float("ARCANE_GENERATION_TIMEOUT", 30.0),
            combat_delay=_env_float("ARCANE_COMBAT_DELAY", 1.5),
            max_spells_per_turn=_env_int("ARCANE_MAX_SPELLS_PER_TURN", 2),
            mulligan_size=_env_int("ARCANE_MULLIGAN_SIZE", 2),
            max_rounds=_env_int("ARCANE_MAX_ROUNDS", 50),
            catalog_dsn=dsn,
            llm_provider=os.getenv("ARCANE_LLM_PROVIDER", "openai"),
            llm_model=os.getenv("ARCANE_LLM_MODEL"),
        )


__all__ = ["Settings", "build_postgres_dsn"]
