"""Core package for the Arcane Clash card game engine."""

from .catalog import CatalogClient, InMemoryCatalog, load_templates_json
from .combat import CombatResult, Outcome, resolve_combat, resolve_direct_attack, strike
from .config import Settings, build_postgres_dsn
from .controller import GameController, OperationRequest, OperationResult, new_game, reduce
from .deck import deal, shuffle
from .errors import (
    ArcaneClashError,
    CatalogError,
    CombatPreconditionError,
    ExternalGenerationFailure,
    IllegalActionError,
)
from .factory import build_card_pool, create_card, roll_monster_template
from .models import (
    CardTemplate,
    CardType,
    GameMode,
    GamePhase,
    GameState,
    MonsterCard,
    Player,
    SpellCard,
)
from .player import PlayerAgent
from .simulation import MatchSummary, play_match, run_match

__all__ = [
    "ArcaneClashError",
    "CardTemplate",
    "CardType",
    "CatalogClient",
    "CatalogError",
    "CombatPreconditionError",
    "CombatResult",
    "ExternalGenerationFailure",
    "GameController",
    "GameMode",
    "GamePhase",
    "GameState",
    "IllegalActionError",
    "InMemoryCatalog",
    "MatchSummary",
    "MonsterCard",
    "OperationRequest",
    "OperationResult",
    "Outcome",
    "Player",
    "PlayerAgent",
    "Settings",
    "SpellCard",
    "build_card_pool",
    "build_postgres_dsn",
    "create_card",
    "deal",
    "load_templates_json",
    "new_game",
    "play_match",
    "reduce",
    "resolve_combat",
    "resolve_direct_attack",
    "roll_monster_template",
    "run_match",
    "shuffle",
    "strike",
]
