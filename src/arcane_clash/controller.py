"""Game controller enforcing the phase machine before touching the state.

Every intent, whether a player's selection, an asset response or the system's
"presentation delay elapsed" event, is an :class:`OperationRequest` applied by
the pure :func:`reduce`. :class:`GameController` keeps the current snapshot
and turns rejected intents into failed :class:`OperationResult` objects while
leaving the snapshot untouched.
"""
from __future__ import annotations

import logging
import random
import uuid
from dataclasses import dataclass, field, replace
from typing import Callable, Dict, Iterable, List, Optional, Sequence, Tuple

from . import duel
from .combat import resolve_combat
from .config import Settings
from .deck import deal, shuffle
from .errors import ArcaneClashError, CombatPreconditionError, IllegalActionError
from .factory import build_card_pool, roll_monster_template
from .game_tools import (
    SYSTEM_ACTOR,
    RuleContext,
    discard,
    end_by_hp,
    end_game,
    make_seed,
    payload_str,
    record,
    require_system,
    require_turn,
    rng_from_seed,
    take_from_hand,
    top_up,
)
from .models import (
    HAND_SIZE,
    SELECT_PHASES,
    Card,
    CardTemplate,
    CardType,
    GameMode,
    GamePhase,
    GameState,
    MonsterCard,
    Player,
    default_description,
    placeholder_art,
)

logger = logging.getLogger(__name__)

PLAYER_IDS: Tuple[str, str] = ("player1", "player2")
DEFAULT_NAMES: Tuple[str, str] = ("Player 1", "Player 2")


@dataclass
class OperationRequest:
    """Structured intent emitted by a player, the presentation layer or the system."""

    actor_id: str
    action: str
    payload: Dict[str, object] = field(default_factory=dict)


@dataclass
class OperationResult:
    success: bool
    message: str
    data: Optional[Dict[str, object]] = None


Handler = Callable[[GameState, str, Dict[str, object], RuleContext], GameState]


# ---------------------------------------------------------------------------
# game setup
# ---------------------------------------------------------------------------
def _with_fallback_assets(card: Card) -> Card:
    return replace(
        card,
        art_url=card.art_url or placeholder_art(card.title),
        description=card.description or default_description(card.card_type),
        is_loading_art=False,
        is_loading_description=False,
    )


def _first_phase_state(state: GameState) -> GameState:
    if state.mode is GameMode.DUEL:
        return replace(state, game_phase=GamePhase.MULLIGAN, current_player_index=state.first_player_index)
    return _enter_select_phase(state, 0)


def _flip_for_first_player(state: GameState, rng: random.Random) -> GameState:
    """Toss the seeded coin that decides who opens a duel."""

    flip_seed = f"{rng.getrandbits(128):032x}"
    first = rng_from_seed(flip_seed).randrange(len(state.players))
    winner = state.players[first]
    state = replace(state, first_player_index=first)
    return record(
        state,
        SYSTEM_ACTOR,
        "coin_flip",
        f"{winner.name} wins the coin flip and goes first.",
        {"player_id": winner.id},
        random_seed=flip_seed,
    )


def new_game(
    templates: Iterable[CardTemplate],
    settings: Optional[Settings] = None,
    seed: Optional[str] = None,
    generation: int = 0,
    game_id: Optional[str] = None,
    player_names: Sequence[str] = DEFAULT_NAMES,
) -> GameState:
    """Build the card pool, shuffle it and deal the opening hands.

    The shuffle seed is recorded on the first log entry so a game can be
    replayed. While any card still awaits generated art the game waits in
    ``loading_art``; with generation disabled every card gets its placeholder
    immediately. A duel also tosses a seeded coin for the opening player,
    logged with its own seed.

    Raises:
        CatalogError: if the templates are empty or malformed.
    """

    settings = settings or Settings()
    seed = seed or make_seed()
    rng = rng_from_seed(seed)
    game_id = game_id or uuid.uuid4().hex[:12]

    templates = list(templates)
    if settings.roll_stats:
        templates = [
            roll_monster_template(t.title, rng) if t.card_type is CardType.MONSTER else t for t in templates
        ]
    pool = build_card_pool(templates, rng)
    if not settings.generate_assets:
        pool = tuple(_with_fallback_assets(card) for card in pool)

    deck = shuffle(pool, rng)
    hand1, deck = deal(deck, HAND_SIZE)
    hand2, deck = deal(deck, HAND_SIZE)
    players = (
        Player(id=PLAYER_IDS[0], name=player_names[0], hand=hand1),
        Player(id=PLAYER_IDS[1], name=player_names[1], hand=hand2),
    )
    pending_art = frozenset(card.id for card in pool if card.is_loading_art)

    state = GameState(
        game_id=game_id,
        players=players,
        deck=deck,
        mode=settings.mode,
        generation=generation,
        pending_art=pending_art,
        seed=seed,
    )
    state = record(
        state,
        SYSTEM_ACTOR,
        "start",
        f"A new {settings.mode.value} game begins with {len(pool)} cards.",
        {"generation": generation, "pool_size": len(pool)},
        random_seed=seed,
    )
    for player in players:
        state = record(
            state,
            SYSTEM_ACTOR,
            "draw",
            f"{player.name} draws {len(player.hand)} cards.",
            {"player_id": player.id, "count": len(player.hand)},
        )
    if settings.mode is GameMode.DUEL:
        state = _flip_for_first_player(state, rng)
    logger.info(
        "Game %s generation %d created (%s mode, %d cards, seed %s)",
        game_id,
        generation,
        settings.mode.value,
        len(pool),
        seed,
    )
    if pending_art:
        return replace(state, game_phase=GamePhase.LOADING_ART)
    return _first_phase_state(state)


# ---------------------------------------------------------------------------
# clash flow
# ---------------------------------------------------------------------------
def _enter_select_phase(state: GameState, index: int) -> GameState:
    """Hand selection to ``index`` unless they can never select again."""

    player = state.players[index]
    if not player.monsters_in_hand() and not state.deck:
        state = record(
            state,
            SYSTEM_ACTOR,
            "exhaustion",
            f"{player.name} has no monsters left and the deck is empty.",
        )
        return end_by_hp(state, "The game ends on remaining HP.")
    return replace(state, current_player_index=index, game_phase=SELECT_PHASES[index])


def _handle_select_card(state: GameState, actor_id: str, payload: Dict[str, object], ctx: RuleContext) -> GameState:
    index = require_turn(state, actor_id, *SELECT_PHASES)
    if state.game_phase is not SELECT_PHASES[index]:
        raise IllegalActionError(f"{actor_id} cannot select a card during {state.game_phase.value}")
    player = state.players[index]
    state, card = take_from_hand(state, index, payload_str(payload, "card_id"))

    if not isinstance(card, MonsterCard):
        state = discard(state, [card])
        state = record(
            state,
            player.id,
            "play_spell",
            f"{player.name} plays {card.title}. It has no effect in combat.",
            {"card_id": card.id},
        )
        state = top_up(state, index)
        return _enter_select_phase(state, index)

    state = state.with_arena(index, card)
    state = record(state, player.id, "select_card", f"{player.name} selects {card.title}.", {"card_id": card.id})
    if index == 0:
        return _enter_select_phase(state, 1)
    return replace(state, game_phase=GamePhase.COMBAT_ANIMATION)


def _handle_resolve_combat(
    state: GameState, actor_id: str, payload: Dict[str, object], ctx: RuleContext
) -> GameState:
    require_system(state, actor_id, GamePhase.COMBAT_ANIMATION)
    player1, player2 = state.players
    card1, card2 = state.arena
    if card1 is None or card2 is None:
        raise CombatPreconditionError("Both arena slots must hold a monster before combat")

    result = resolve_combat(player1, card1, player2, card2, arena=state.arena)
    state = replace(
        state,
        players=(result.player1, result.player2),
        selected_card_p1=None,
        selected_card_p2=None,
        discard_pile=state.discard_pile + result.discarded,
        round_number=state.round_number + 1,
    )
    for line in result.log:
        state = record(state, SYSTEM_ACTOR, "combat", line)
    if result.is_terminal:
        return end_game(state, result.winner_id)

    acted = state.current_player_index
    upcoming = 1 - acted
    state = replace(state, current_player_index=upcoming)
    state = top_up(state, acted)
    state = top_up(state, upcoming)
    state = record(
        state,
        SYSTEM_ACTOR,
        "advance_turn",
        f"Round {state.round_number} complete. {state.players[upcoming].name} selects next.",
        {"round": state.round_number},
    )
    if state.round_number >= ctx.settings.max_rounds:
        return end_by_hp(state, f"Round limit of {ctx.settings.max_rounds} reached.")
    return _enter_select_phase(state, upcoming)


# ---------------------------------------------------------------------------
# generated assets
# ---------------------------------------------------------------------------
def _require_current(state: GameState, payload: Dict[str, object]) -> str:
    card_id = payload_str(payload, "card_id")
    generation = payload.get("generation")
    if generation != state.generation:
        raise IllegalActionError(
            f"Ignoring stale response for {card_id} (generation {generation}, current {state.generation})"
        )
    if card_id not in state.card_locations():
        raise IllegalActionError(f"Ignoring response for unknown card {card_id}")
    return card_id


def _handle_art_loaded(state: GameState, actor_id: str, payload: Dict[str, object], ctx: RuleContext) -> GameState:
    require_system(state, actor_id)
    card_id = _require_current(state, payload)
    reference = payload.get("image_reference")

    def _apply(card: Card) -> Card:
        art_url = reference if isinstance(reference, str) and reference else placeholder_art(card.title)
        return replace(card, art_url=art_url, is_loading_art=False)

    state = state.map_card(card_id, _apply)
    state = replace(state, pending_art=state.pending_art - {card_id})
    if state.game_phase is GamePhase.LOADING_ART and not state.pending_art:
        state = record(state, SYSTEM_ACTOR, "art_ready", "All card art is ready.")
        return _first_phase_state(state)
    return state


def _handle_description_loaded(
    state: GameState, actor_id: str, payload: Dict[str, object], ctx: RuleContext
) -> GameState:
    require_system(state, actor_id)
    card_id = _require_current(state, payload)
    text = payload.get("text")

    def _apply(card: Card) -> Card:
        description = text if isinstance(text, str) and text else default_description(card.card_type)
        return replace(card, description=description, is_loading_description=False)

    return state.map_card(card_id, _apply)


def _handle_restart(state: GameState, actor_id: str, payload: Dict[str, object], ctx: RuleContext) -> GameState:
    seed = f"{ctx.rng.getrandbits(128):032x}"
    names = tuple(p.name for p in state.players)
    logger.info("Restarting game %s as generation %d", state.game_id, state.generation + 1)
    return new_game(
        ctx.templates,
        settings=ctx.settings,
        seed=seed,
        generation=state.generation + 1,
        game_id=state.game_id,
        player_names=names,
    )


# ---------------------------------------------------------------------------
# reducer
# ---------------------------------------------------------------------------
HANDLERS: Dict[str, Handler] = {
    "select_card": _handle_select_card,
    "resolve_combat": _handle_resolve_combat,
    "art_loaded": _handle_art_loaded,
    "description_loaded": _handle_description_loaded,
    "restart": _handle_restart,
    **duel.HANDLERS,
}

# Actions still accepted once the game is over.
_AFTER_GAME_OVER = frozenset({"restart", "art_loaded", "description_loaded"})

_CLASH_ONLY = frozenset({"select_card", "resolve_combat"})


def reduce(
    state: GameState,
    request: OperationRequest,
    rng: Optional[random.Random] = None,
    settings: Optional[Settings] = None,
    templates: Sequence[CardTemplate] = (),
) -> GameState:
    """Apply ``request`` to ``state`` and return the next snapshot.

    Raises:
        IllegalActionError: the intent is not allowed in the current phase.
        CombatPreconditionError: the resolver was handed an ineligible card.
    """

    handler = HANDLERS.get(request.action)
    if handler is None:
        raise IllegalActionError(f"Unknown action: {request.action}")
    if state.is_over and request.action not in _AFTER_GAME_OVER:
        raise IllegalActionError("The game is over; only restart is accepted")
    if request.action in duel.HANDLERS and state.mode is not GameMode.DUEL:
        raise IllegalActionError(f"{request.action} is only available in duel mode")
    if request.action in _CLASH_ONLY and state.mode is not GameMode.CLASH:
        raise IllegalActionError(f"{request.action} is only available in clash mode")

    ctx = RuleContext(
        rng=rng or random.Random(),
        settings=settings or Settings(mode=state.mode),
        templates=tuple(templates),
    )
    return handler(state, request.actor_id, dict(request.payload or {}), ctx)


def system_intent(state: GameState) -> Optional[OperationRequest]:
    """The system intent the current phase is waiting for, if any."""

    if state.game_phase is GamePhase.COMBAT_ANIMATION:
        return OperationRequest(actor_id=SYSTEM_ACTOR, action="resolve_combat")
    action = duel.SYSTEM_INTENTS.get(state.game_phase)
    if action is None:
        return None
    return OperationRequest(actor_id=SYSTEM_ACTOR, action=action)


# ---------------------------------------------------------------------------
# controller
# ---------------------------------------------------------------------------
class GameController:
    """Owns the current snapshot of one game and applies intents in order."""

    def __init__(
        self,
        templates: Iterable[CardTemplate],
        settings: Optional[Settings] = None,
        seed: Optional[str] = None,
        rng: Optional[random.Random] = None,
        game_id: Optional[str] = None,
        player_names: Sequence[str] = DEFAULT_NAMES,
    ) -> None:
        self.templates: Tuple[CardTemplate, ...] = tuple(templates)
        self.settings = settings or Settings()
        self.rng = rng or (rng_from_seed(seed) if seed else random.Random())
        self.state: GameState = new_game(
            self.templates, self.settings, seed=seed, game_id=game_id, player_names=player_names
        )

    @property
    def game_id(self) -> str:
        return self.state.game_id

    def dispatch(self, request: OperationRequest) -> OperationResult:
        try:
            state = reduce(self.state, request, self.rng, self.settings, self.templates)
        except CombatPreconditionError as exc:
            logger.error("Combat aborted in game %s: %s", self.state.game_id, exc)
            return OperationResult(False, str(exc))
        except ArcaneClashError as exc:
            logger.info("Rejected %s from %s: %s", request.action, request.actor_id, exc)
            return OperationResult(False, str(exc))
        self.state = state
        return OperationResult(
            True,
            "ok",
            data={"phase": state.game_phase.value, "generation": state.generation},
        )

    def restart(self) -> OperationResult:
        return self.dispatch(OperationRequest(actor_id=SYSTEM_ACTOR, action="restart"))

    def pending_system_intent(self) -> Optional[OperationRequest]:
        return system_intent(self.state)

    def settle(self, limit: int = 100) -> List[OperationResult]:
        """Apply due system intents until a player must act or the game ends."""

        results: List[OperationResult] = []
        while len(results) < limit:
            request = self.pending_system_intent()
            if request is None or self.state.is_over:
                break
            result = self.dispatch(request)
            results.append(result)
            if not result.success:
                break
        return results


__all__ = [
    "OperationRequest",
    "OperationResult",
    "GameController",
    "HANDLERS",
    "PLAYER_IDS",
    "new_game",
    "reduce",
    "system_intent",
]
