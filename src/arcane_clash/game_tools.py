"""Atomic state operations shared by the clash and duel rule handlers.

The tools never decide what the rules allow. They return a new
:class:`GameState` with a log entry for every change; the guards at the bottom
only check who may act, and the rule handlers in :mod:`arcane_clash.controller`
and :mod:`arcane_clash.duel` build on both.
"""
from __future__ import annotations

import logging
import random
import secrets
from dataclasses import dataclass, field, replace
from typing import Dict, Iterable, Optional, Sequence, Tuple

from .config import Settings
from .deck import deal, shuffle
from .errors import IllegalActionError
from .models import HAND_SIZE, Card, CardTemplate, GameLogEntry, GamePhase, GameState

logger = logging.getLogger(__name__)

SYSTEM_ACTOR = "system"


def make_seed() -> str:
    return secrets.token_hex(16)


def rng_from_seed(seed: str) -> random.Random:
    return random.Random(int(seed, 16))


@dataclass
class RuleContext:
    """Collaborators every rule handler may consult."""

    rng: random.Random = field(default_factory=random.Random)
    settings: Settings = field(default_factory=Settings)
    templates: Tuple[CardTemplate, ...] = ()


# ---------------------------------------------------------------------------
# logging helpers
# ---------------------------------------------------------------------------
def record(
    state: GameState,
    actor: str,
    action: str,
    message: str,
    payload: Optional[Dict[str, object]] = None,
    random_seed: Optional[str] = None,
) -> GameState:
    entry = GameLogEntry(
        actor=actor,
        action=action,
        message=message,
        payload=dict(payload or {}),
        random_seed=random_seed,
    )
    logger.debug("[%s] %s: %s", state.game_id, action, message)
    return state.with_log(entry)


def record_lines(state: GameState, actor: str, action: str, lines: Iterable[str]) -> GameState:
    for line in lines:
        state = record(state, actor, action, line)
    return state


# ---------------------------------------------------------------------------
# card movement
# ---------------------------------------------------------------------------
def take_from_hand(state: GameState, index: int, card_id: str) -> Tuple[GameState, Card]:
    player = state.players[index]
    card = player.find_card(card_id)
    if card is None:
        raise IllegalActionError(f"{player.name} does not hold card {card_id}")
    return state.with_player(index, player.without_card(card_id)), card


def discard(state: GameState, cards: Sequence[Card]) -> GameState:
    return replace(state, discard_pile=state.discard_pile + tuple(cards))


def top_up(state: GameState, index: int) -> GameState:
    """Deal from the deck until the player's hand holds ``HAND_SIZE`` cards.

    Dealing is capped by the deck; an exhausted deck logs ``draws 0 cards``.
    """

    player = state.players[index]
    dealt, remaining = deal(state.deck, HAND_SIZE - len(player.hand))
    state = replace(state.with_player(index, player.with_cards(dealt)), deck=remaining)
    noun = "card" if len(dealt) == 1 else "cards"
    if not dealt and len(player.hand) < HAND_SIZE:
        logger.info("Deck exhausted in game %s; %s keeps a short hand", state.game_id, player.name)
    return record(
        state,
        SYSTEM_ACTOR,
        "draw",
        f"{player.name} draws {len(dealt)} {noun}.",
        {"player_id": player.id, "count": len(dealt)},
    )


def return_to_deck(
    state: GameState, index: int, card_ids: Sequence[str], rng: random.Random
) -> GameState:
    """Shuffle ``card_ids`` from the hand back into the deck and redraw as many."""

    returned = []
    for card_id in card_ids:
        state, card = take_from_hand(state, index, card_id)
        returned.append(card)
    seed = f"{rng.getrandbits(128):032x}"
    deck = shuffle(state.deck + tuple(returned), rng_from_seed(seed))
    dealt, remaining = deal(deck, len(returned))
    player = state.players[index]
    state = replace(state.with_player(index, player.with_cards(dealt)), deck=remaining)
    return record(
        state,
        player.id,
        "mulligan",
        f"{player.name} shuffles {len(returned)} cards back and draws {len(dealt)}.",
        {"player_id": player.id, "returned": list(card_ids)},
        random_seed=seed,
    )


# ---------------------------------------------------------------------------
# game end
# ---------------------------------------------------------------------------
def end_game(state: GameState, winner_id: Optional[str]) -> GameState:
    state = replace(state, game_phase=GamePhase.GAME_OVER, winner_id=winner_id, pending_action=None)
    winner = state.winner
    message = f"Game over. {winner.name} wins." if winner is not None else "Game over. It's a draw."
    logger.info("Game %s finished: %s", state.game_id, message)
    return record(state, SYSTEM_ACTOR, "game_over", message, {"winner_id": winner_id})


def end_by_hp(state: GameState, reason: str) -> GameState:
    """Finish the game on remaining hit points; equal hit points draw."""

    player1, player2 = state.players
    state = record(state, SYSTEM_ACTOR, "tiebreak", reason)
    if player1.hp == player2.hp:
        return end_game(state, None)
    return end_game(state, player1.id if player1.hp > player2.hp else player2.id)


# ---------------------------------------------------------------------------
# guards
# ---------------------------------------------------------------------------
def require_turn(state: GameState, actor_id: str, *phases: GamePhase) -> int:
    """Return the actor's index if they own the current phase, else reject."""

    if state.game_phase not in phases:
        allowed = ", ".join(p.value for p in phases)
        raise IllegalActionError(f"Action not allowed in {state.game_phase.value} (expected {allowed})")
    index = state.player_index(actor_id)
    if index is None:
        raise IllegalActionError(f"Unknown player: {actor_id}")
    if index != state.current_player_index:
        raise IllegalActionError(f"It is not {state.players[index].name}'s turn")
    return index


def require_system(state: GameState, actor_id: str, *phases: GamePhase) -> None:
    if actor_id != SYSTEM_ACTOR:
        raise IllegalActionError(f"Only the system may perform this action, not {actor_id}")
    if phases and state.game_phase not in phases:
        raise IllegalActionError(f"Nothing to resolve in {state.game_phase.value}")


def payload_str(payload: Dict[str, object], key: str) -> str:
    value = payload.get(key)
    if not isinstance(value, str) or not value:
        raise IllegalActionError(f"Missing or invalid '{key}'")
    return value


__all__ = [
    "SYSTEM_ACTOR",
    "RuleContext",
    "make_seed",
    "rng_from_seed",
    "record",
    "record_lines",
    "take_from_hand",
    "discard",
    "top_up",
    "return_to_deck",
    "end_game",
    "end_by_hp",
    "require_turn",
    "require_system",
    "payload_str",
]
