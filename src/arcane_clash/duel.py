"""Rule handlers for the extended duel flow.

A duel turn is a sequence of discrete intents in ``player_action_phase``:
summon a monster, cast spells, swap the active monster, attack, end the turn.
Attacks and spells pass through a pending phase that the system resolves once
its presentation delay has elapsed, the same way clash combat does.
"""
from __future__ import annotations

import logging
from dataclasses import replace
from typing import Callable, Dict, List

from .combat import Outcome, classify_outcome, resolve_combat, resolve_direct_attack
from .effects import discard_defeated, resolve_spell, tick_status_effects
from .errors import IllegalActionError
from .game_tools import (
    RuleContext,
    discard,
    end_by_hp,
    end_game,
    payload_str,
    record,
    record_lines,
    require_system,
    require_turn,
    return_to_deck,
    take_from_hand,
    top_up,
)
from .models import (
    HAND_SIZE,
    GamePhase,
    GameState,
    MonsterCard,
    PendingAction,
    SpellCard,
    is_first_turn,
)

logger = logging.getLogger(__name__)

Handler = Callable[[GameState, str, Dict[str, object], RuleContext], GameState]


# ---------------------------------------------------------------------------
# turn structure
# ---------------------------------------------------------------------------
def start_turn(state: GameState, index: int, ctx: RuleContext) -> GameState:
    """Hand the turn to ``index``: count it, reset limits, tick status effects."""

    player = state.players[index]
    player = replace(player, turn_count=player.turn_count + 1, spells_played_this_turn=0)
    state = state.with_player(index, player)
    state = replace(state, current_player_index=index, round_number=state.round_number + 1)

    if player.turn_count > ctx.settings.max_rounds:
        return end_by_hp(state, f"Turn limit of {ctx.settings.max_rounds} reached.")

    active = state.arena_card(index)
    if active is not None and active.status_effects:
        active, lines = tick_status_effects(active)
        state = record_lines(state.with_arena(index, active), player.id, "status_effect", lines)

    state = record(
        state,
        player.id,
        "start_turn",
        f"{player.name}'s turn {player.turn_count} begins.",
        {"player_id": player.id, "turn": player.turn_count},
    )
    return replace(state, game_phase=GamePhase.PLAYER_ACTION)


def _finish_if_decided(state: GameState) -> GameState:
    outcome, winner_id = classify_outcome(*state.players)
    if outcome is Outcome.CONTINUE:
        return state
    return end_game(state, winner_id)


# ---------------------------------------------------------------------------
# mulligan
# ---------------------------------------------------------------------------
def _handle_mulligan(state: GameState, actor_id: str, payload: Dict[str, object], ctx: RuleContext) -> GameState:
    index = require_turn(state, actor_id, GamePhase.MULLIGAN)
    player = state.players[index]
    if player.has_mulliganed:
        raise IllegalActionError(f"{player.name} has already taken a mulligan")

    card_ids = payload.get("card_ids") or []
    if not isinstance(card_ids, list) or not all(isinstance(c, str) for c in card_ids):
        raise IllegalActionError("'card_ids' must be a list of card ids")
    if len(set(card_ids)) != len(card_ids):
        raise IllegalActionError("Duplicate card ids in mulligan")
    if len(card_ids) > ctx.settings.mulligan_size:
        raise IllegalActionError(f"At most {ctx.settings.mulligan_size} cards may be mulliganed")

    if card_ids:
        state = return_to_deck(state, index, card_ids, ctx.rng)
    else:
        state = record(state, player.id, "mulligan", f"{player.name} keeps their hand.")
    state = state.with_player(index, replace(state.players[index], has_mulliganed=True))

    other = 1 - index
    if not state.players[other].has_mulliganed:
        return replace(state, current_player_index=other)
    return start_turn(state, state.first_player_index, ctx)


# ---------------------------------------------------------------------------
# player actions
# ---------------------------------------------------------------------------
def _handle_summon_monster(
    state: GameState, actor_id: str, payload: Dict[str, object], ctx: RuleContext
) -> GameState:
    index = require_turn(state, actor_id, GamePhase.PLAYER_ACTION)
    player = state.players[index]
    if state.arena_card(index) is not None:
        raise IllegalActionError(f"{player.name} already has an active monster")
    card = player.find_card(payload_str(payload, "card_id"))
    if not isinstance(card, MonsterCard):
        raise IllegalActionError("Only a Monster card from your hand can be summoned")

    state, _ = take_from_hand(state, index, card.id)
    state = state.with_arena(index, card)
    return record(state, player.id, "summon_monster", f"{player.name} summons {card.title}.", {"card_id": card.id})


def _handle_cast_spell(state: GameState, actor_id: str, payload: Dict[str, object], ctx: RuleContext) -> GameState:
    index = require_turn(state, actor_id, GamePhase.PLAYER_ACTION)
    player = state.players[index]
    if is_first_turn(player):
        raise IllegalActionError("Spells cannot be cast on your first turn")
    if player.spells_played_this_turn >= ctx.settings.max_spells_per_turn:
        raise IllegalActionError(f"At most {ctx.settings.max_spells_per_turn} spells may be cast per turn")
    card = player.find_card(payload_str(payload, "card_id"))
    if not isinstance(card, SpellCard):
        raise IllegalActionError("Only a Spell card from your hand can be cast")

    state, _ = take_from_hand(state, index, card.id)
    state = discard(state, [card])
    state = state.with_player(
        index, replace(state.players[index], spells_played_this_turn=player.spells_played_this_turn + 1)
    )
    state = replace(
        state,
        game_phase=GamePhase.SPELL_EFFECT,
        pending_action=PendingAction(kind="spell", actor_index=index, card_id=card.id),
    )
    return record(state, player.id, "cast_spell", f"{player.name} casts {card.title}.", {"card_id": card.id})


def _handle_attack(state: GameState, actor_id: str, payload: Dict[str, object], ctx: RuleContext) -> GameState:
    index = require_turn(state, actor_id, GamePhase.PLAYER_ACTION)
    attacker = state.arena_card(index)
    if attacker is None:
        raise IllegalActionError("An active monster is required to attack")
    state = replace(
        state,
        game_phase=GamePhase.COMBAT,
        pending_action=PendingAction(kind="attack", actor_index=index, card_id=attacker.id),
    )
    player = state.players[index]
    return record(state, player.id, "attack", f"{player.name}'s {attacker.title} attacks!", {"card_id": attacker.id})


def _handle_initiate_swap(
    state: GameState, actor_id: str, payload: Dict[str, object], ctx: RuleContext
) -> GameState:
    index = require_turn(state, actor_id, GamePhase.PLAYER_ACTION)
    if state.arena_card(index) is None:
        raise IllegalActionError("There is no active monster to swap")
    if not state.players[index].monsters_in_hand():
        raise IllegalActionError("There is no monster in hand to swap in")
    return replace(state, game_phase=GamePhase.SELECTING_SWAP_MONSTER)


def _handle_choose_swap(state: GameState, actor_id: str, payload: Dict[str, object], ctx: RuleContext) -> GameState:
    index = require_turn(state, actor_id, GamePhase.SELECTING_SWAP_MONSTER)
    player = state.players[index]
    card = player.find_card(payload_str(payload, "card_id"))
    if not isinstance(card, MonsterCard):
        raise IllegalActionError("Choose a Monster card from your hand")

    hand_full = len(player.hand) >= HAND_SIZE
    outgoing = state.arena_card(index)
    state, _ = take_from_hand(state, index, card.id)
    state = state.with_arena(index, card)
    if outgoing is not None and hand_full:
        state = discard(state, [outgoing])
        state = record(state, player.id, "swap", f"{player.name}'s hand is full; {outgoing.title} is discarded.")
    elif outgoing is not None:
        state = state.with_player(index, state.players[index].with_cards((outgoing,)))
    state = record(
        state,
        player.id,
        "swap",
        f"{player.name} swaps in {card.title}.",
        {"card_id": card.id, "returned": outgoing.id if outgoing and not hand_full else None},
    )
    return replace(state, game_phase=GamePhase.PLAYER_ACTION)


def _handle_cancel_swap(state: GameState, actor_id: str, payload: Dict[str, object], ctx: RuleContext) -> GameState:
    require_turn(state, actor_id, GamePhase.SELECTING_SWAP_MONSTER)
    return replace(state, game_phase=GamePhase.PLAYER_ACTION)


def _handle_end_turn(state: GameState, actor_id: str, payload: Dict[str, object], ctx: RuleContext) -> GameState:
    index = require_turn(state, actor_id, GamePhase.PLAYER_ACTION)
    player = state.players[index]
    state = record(state, player.id, "end_turn", f"{player.name} ends their turn.")
    return replace(state, game_phase=GamePhase.TURN_RESOLUTION)


# ---------------------------------------------------------------------------
# system resolution
# ---------------------------------------------------------------------------
def _resolve_spell(state: GameState, pending: PendingAction) -> GameState:
    spell = next((c for c in state.discard_pile if c.id == pending.card_id), None)
    if not isinstance(spell, SpellCard):
        raise IllegalActionError(f"Pending spell {pending.card_id} is no longer available")
    caster = state.players[pending.actor_index]
    state, lines = resolve_spell(state, pending.actor_index, spell)
    state = record_lines(state, caster.id, "spell_effect", lines)
    state, lines = discard_defeated(state)
    state = record_lines(state, caster.id, "spell_effect", lines)
    state = _finish_if_decided(replace(state, pending_action=None))
    if state.is_over:
        return state
    return replace(state, game_phase=GamePhase.PLAYER_ACTION)


def _resolve_attack(state: GameState, pending: PendingAction) -> GameState:
    attacker_index = pending.actor_index
    defender_index = 1 - attacker_index
    attacker = state.arena_card(attacker_index)
    if attacker is None:
        raise IllegalActionError("The attacking monster left the arena")
    defender = state.arena_card(defender_index)
    attacker_owner = state.players[attacker_index]
    defender_owner = state.players[defender_index]
    state = replace(state, pending_action=None)

    if defender is None:
        defender_owner, line = resolve_direct_attack(attacker_owner, attacker, defender_owner)
        state = record(state.with_player(defender_index, defender_owner), attacker_owner.id, "combat", line)
        if defender_owner.is_defeated:
            return end_game(state, attacker_owner.id)
        return replace(state, game_phase=GamePhase.TURN_RESOLUTION)

    result = resolve_combat(attacker_owner, attacker, defender_owner, defender, arena=(attacker, defender))
    state = state.with_player(attacker_index, result.player1).with_player(defender_index, result.player2)
    state = discard(state.with_arena(0, None).with_arena(1, None), result.discarded)
    state = record_lines(state, attacker_owner.id, "combat", result.log)
    if result.is_terminal:
        return end_game(state, result.winner_id)
    return replace(state, game_phase=GamePhase.TURN_RESOLUTION)


def _handle_resolve_pending(
    state: GameState, actor_id: str, payload: Dict[str, object], ctx: RuleContext
) -> GameState:
    require_system(state, actor_id, GamePhase.SPELL_EFFECT, GamePhase.COMBAT)
    pending = state.pending_action
    if pending is None:
        raise IllegalActionError("No pending action to resolve")
    if pending.kind == "spell":
        return _resolve_spell(state, pending)
    return _resolve_attack(state, pending)


def _handle_advance_turn(state: GameState, actor_id: str, payload: Dict[str, object], ctx: RuleContext) -> GameState:
    require_system(state, actor_id, GamePhase.TURN_RESOLUTION)
    index = state.current_player_index
    state = top_up(state, index)
    return start_turn(state, 1 - index, ctx)


HANDLERS: Dict[str, Handler] = {
    "mulligan": _handle_mulligan,
    "summon_monster": _handle_summon_monster,
    "cast_spell": _handle_cast_spell,
    "attack": _handle_attack,
    "initiate_swap": _handle_initiate_swap,
    "choose_swap": _handle_choose_swap,
    "cancel_swap": _handle_cancel_swap,
    "end_turn": _handle_end_turn,
    "resolve_pending": _handle_resolve_pending,
    "advance_turn": _handle_advance_turn,
}

# Intents only the system issues, keyed by the phase that awaits them.
SYSTEM_INTENTS: Dict[GamePhase, str] = {
    GamePhase.SPELL_EFFECT: "resolve_pending",
    GamePhase.COMBAT: "resolve_pending",
    GamePhase.TURN_RESOLUTION: "advance_turn",
}


def legal_actions(state: GameState, index: int, max_spells_per_turn: int) -> List[str]:
    """Names of the duel intents player ``index`` could issue right now."""

    if state.current_player_index != index:
        return []
    player = state.players[index]
    if state.game_phase is GamePhase.MULLIGAN:
        return [] if player.has_mulliganed else ["mulligan"]
    if state.game_phase is GamePhase.SELECTING_SWAP_MONSTER:
        return ["choose_swap", "cancel_swap"]
    if state.game_phase is not GamePhase.PLAYER_ACTION:
        return []

    actions: List[str] = []
    active = state.arena_card(index)
    if active is None and player.monsters_in_hand():
        actions.append("summon_monster")
    if (
        not is_first_turn(player)
        and player.spells_played_this_turn < max_spells_per_turn
        and any(isinstance(c, SpellCard) for c in player.hand)
    ):
        actions.append("cast_spell")
    if active is not None:
        actions.append("attack")
        if player.monsters_in_hand():
            actions.append("initiate_swap")
    actions.append("end_turn")
    return actions


__all__ = ["HANDLERS", "SYSTEM_INTENTS", "start_turn", "legal_actions"]
