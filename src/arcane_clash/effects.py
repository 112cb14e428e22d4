"""Spell effects and status-effect ticking for the extended duel flow."""
from __future__ import annotations

import logging
from dataclasses import replace
from typing import Callable, Dict, List, Optional, Tuple

from .combat import strike
from .models import HAND_SIZE, GameState, MonsterCard, SpellCard, StatusEffect

logger = logging.getLogger(__name__)

EffectHandler = Callable[[GameState, int, SpellCard], Tuple[GameState, List[str]]]

REGENERATE = "regenerate"


# ---------------------------------------------------------------------------
# primitives
# ---------------------------------------------------------------------------
def _update_arena(state: GameState, index: int, update: Callable[[MonsterCard], MonsterCard]) -> GameState:
    card = state.arena_card(index)
    if card is None:
        return state
    return state.with_arena(index, update(card))


def _spell_damage(state: GameState, index: int, amount: int) -> Tuple[GameState, int]:
    """Spell damage hits the magic shield first. Returns the HP damage dealt."""

    card = state.arena_card(index)
    if card is None:
        return state, 0
    result = strike(amount, card.magic_shield, card.hp)
    updated = replace(card, magic_shield=result.shield, hp=result.hp)
    return state.with_arena(index, updated), result.hp_damage


def _damage_player(state: GameState, index: int, amount: int) -> GameState:
    player = state.players[index]
    return state.with_player(index, replace(player, hp=max(0, player.hp - amount)))


def heal(card: MonsterCard, amount: int) -> MonsterCard:
    return replace(card, hp=min(card.max_hp, card.hp + amount))


# ---------------------------------------------------------------------------
# spell handlers
# ---------------------------------------------------------------------------
def _healing_light(state: GameState, caster: int, spell: SpellCard) -> Tuple[GameState, List[str]]:
    card = state.arena_card(caster)
    if card is None:
        return state, [f"{spell.title} fizzles: no active monster to heal."]
    healed = heal(card, 20)
    return state.with_arena(caster, healed), [f"{card.title} heals {healed.hp - card.hp} HP."]


def _fireball(state: GameState, caster: int, spell: SpellCard) -> Tuple[GameState, List[str]]:
    target = 1 - caster
    card = state.arena_card(target)
    if card is None:
        state = _damage_player(state, target, 10)
        return state, [f"{spell.title} hits {state.players[target].name} for 10 damage."]
    state, dealt = _spell_damage(state, target, 15)
    return state, [f"{spell.title} hits {card.title} for {dealt} HP damage."]


def _arcane_shield(state: GameState, caster: int, spell: SpellCard) -> Tuple[GameState, List[str]]:
    def _grant(card: MonsterCard) -> MonsterCard:
        shield = card.magic_shield + 10
        return replace(card, magic_shield=shield, max_magic_shield=max(card.max_magic_shield, shield))

    if state.arena_card(caster) is None:
        return state, [f"{spell.title} fizzles: no active monster."]
    state = _update_arena(state, caster, _grant)
    return state, [f"{state.arena_card(caster).title} gains 10 magic shield."]


def _weakening_curse(state: GameState, caster: int, spell: SpellCard) -> Tuple[GameState, List[str]]:
    target = 1 - caster
    if state.arena_card(target) is None:
        return state, [f"{spell.title} fizzles: no enemy monster."]
    state = _update_arena(
        state, target, lambda c: replace(c, melee=max(0, c.melee - 3), magic=max(0, c.magic - 3))
    )
    return state, [f"{state.arena_card(target).title} is weakened: melee and magic reduced by 3."]


def _stat_boost(stat: str, amount: int) -> EffectHandler:
    def _handler(state: GameState, caster: int, spell: SpellCard) -> Tuple[GameState, List[str]]:
        if state.arena_card(caster) is None:
            return state, [f"{spell.title} fizzles: no active monster."]
        state = _update_arena(state, caster, lambda c: replace(c, **{stat: getattr(c, stat) + amount}))
        return state, [f"{state.arena_card(caster).title} gains {amount} {stat}."]

    return _handler


def _chain_lightning(state: GameState, caster: int, spell: SpellCard) -> Tuple[GameState, List[str]]:
    target = 1 - caster
    card = state.arena_card(target)
    if card is None:
        return state, [f"{spell.title} fizzles: no enemy monster."]
    state, dealt = _spell_damage(state, target, 10)
    lines = [f"{spell.title} hits {card.title} for {dealt} HP damage."]
    if state.arena_card(target).is_defeated:
        state = _damage_player(state, target, 5)
        lines.append(f"The lightning arcs to {state.players[target].name} for 5 damage.")
    return state, lines


def _growth_spurt(state: GameState, caster: int, spell: SpellCard) -> Tuple[GameState, List[str]]:
    if state.arena_card(caster) is None:
        return state, [f"{spell.title} fizzles: no active monster."]
    state = _update_arena(state, caster, lambda c: replace(c, max_hp=c.max_hp + 10, hp=c.hp + 10))
    return state, [f"{state.arena_card(caster).title} grows: max HP and HP increased by 10."]


def _drain_life(state: GameState, caster: int, spell: SpellCard) -> Tuple[GameState, List[str]]:
    target = 1 - caster
    card = state.arena_card(target)
    if card is None:
        return state, [f"{spell.title} fizzles: no enemy monster."]
    state, dealt = _spell_damage(state, target, 8)
    lines = [f"{spell.title} drains {dealt} HP from {card.title}."]
    own = state.arena_card(caster)
    if own is not None:
        state = state.with_arena(caster, heal(own, 8))
        lines.append(f"{own.title} heals {state.arena_card(caster).hp - own.hp} HP.")
    return state, lines


def _regenerate(state: GameState, caster: int, spell: SpellCard) -> Tuple[GameState, List[str]]:
    if state.arena_card(caster) is None:
        return state, [f"{spell.title} fizzles: no active monster."]
    effect = StatusEffect(id=f"{spell.id}-{REGENERATE}", type=REGENERATE, duration=3, value=5)
    state = _update_arena(state, caster, lambda c: replace(c, status_effects=c.status_effects + (effect,)))
    return state, [f"{state.arena_card(caster).title} will regenerate 5 HP for 3 turns."]


def _terrify(state: GameState, caster: int, spell: SpellCard) -> Tuple[GameState, List[str]]:
    target = 1 - caster
    card = state.arena_card(target)
    if card is None:
        return state, [f"{spell.title} fizzles: no enemy monster."]
    owner = state.players[target]
    state = state.with_arena(target, None)
    if len(owner.hand) >= HAND_SIZE:
        state = replace(state, discard_pile=state.discard_pile + (card,))
        return state, [f"{card.title} flees, but {owner.name}'s hand is full: it is discarded."]
    state = state.with_player(target, owner.with_cards((card,)))
    return state, [f"{card.title} flees back to {owner.name}'s hand."]


SPELL_EFFECTS: Dict[str, EffectHandler] = {
    "Healing Light": _healing_light,
    "Fireball": _fireball,
    "Arcane Shield": _arcane_shield,
    "Weakening Curse": _weakening_curse,
    "Swiftness Aura": _stat_boost("melee", 3),
    "Stone Skin": _stat_boost("defense", 5),
    "Chain Lightning": _chain_lightning,
    "Growth Spurt": _growth_spurt,
    "Drain Life": _drain_life,
    "Regenerate": _regenerate,
    "Terrify": _terrify,
}


def resolve_spell(state: GameState, caster: int, spell: SpellCard) -> Tuple[GameState, List[str]]:
    """Apply ``spell`` for player ``caster``; unknown spells are flavour only."""

    handler = SPELL_EFFECTS.get(spell.title)
    if handler is None:
        logger.debug("Spell %s has no implemented effect", spell.title)
        return state, [f"{spell.title} shimmers, but its effect is not yet implemented."]
    return handler(state, caster, spell)


# ---------------------------------------------------------------------------
# upkeep
# ---------------------------------------------------------------------------
def tick_status_effects(card: MonsterCard) -> Tuple[MonsterCard, List[str]]:
    """Apply and decrement every status effect once, dropping expired ones."""

    lines: List[str] = []
    remaining: List[StatusEffect] = []
    for effect in card.status_effects:
        if effect.type == REGENERATE:
            healed = heal(card, effect.value)
            lines.append(f"{card.title} regenerates {healed.hp - card.hp} HP.")
            card = healed
        ticked: Optional[StatusEffect] = effect.tick()
        if ticked is not None:
            remaining.append(ticked)
        else:
            lines.append(f"{effect.type.capitalize()} on {card.title} wears off.")
    return replace(card, status_effects=tuple(remaining)), lines


def discard_defeated(state: GameState) -> Tuple[GameState, List[str]]:
    """Move defeated arena monsters to the discard pile."""

    lines: List[str] = []
    for index in (0, 1):
        card = state.arena_card(index)
        if card is not None and card.is_defeated:
            state = replace(state.with_arena(index, None), discard_pile=state.discard_pile + (card,))
            lines.append(f"{card.title} is defeated and discarded.")
    return state, lines


__all__ = [
    "SPELL_EFFECTS",
    "REGENERATE",
    "resolve_spell",
    "tick_status_effects",
    "discard_defeated",
    "heal",
]
