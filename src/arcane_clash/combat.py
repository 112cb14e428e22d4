"""Combat resolution between two monster cards.

The resolver is pure: it receives two players and their chosen monsters and
returns updated copies together with the cards to discard, the battle log and
an outcome classification. It never raises for game results; only a call that
breaks the contract (a spell, a defeated monster, a card the player does not
hold) raises :class:`CombatPreconditionError`.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from enum import Enum
from typing import List, Optional, Sequence, Tuple

from .errors import CombatPreconditionError
from .models import Card, MonsterCard, Player

logger = logging.getLogger(__name__)


class Outcome(str, Enum):
    CONTINUE = "continue"
    WINNER = "winner"
    DRAW = "draw"


@dataclass(frozen=True)
class StrikeResult:
    """Effect of one attack landing on one monster."""

    attack: int
    absorbed: int
    hp_damage: int
    shield: int
    hp: int

    @property
    def defeated(self) -> bool:
        return self.hp <= 0


@dataclass(frozen=True)
class CombatResult:
    """Everything a single resolution produced."""

    player1: Player
    player2: Player
    card1: MonsterCard
    card2: MonsterCard
    discarded: Tuple[MonsterCard, ...]
    log: Tuple[str, ...]
    outcome: Outcome
    winner_id: Optional[str] = None
    player_damage: Tuple[int, int] = (0, 0)

    @property
    def is_terminal(self) -> bool:
        return self.outcome is not Outcome.CONTINUE


def strike(attack: int, shield: int, hp: int) -> StrikeResult:
    """Apply ``attack`` to a shield pool first, then to hit points.

    HP damage is computed from the shield value before this attack, so hit
    points are only touched once the shield is fully depleted.
    """

    attack = max(0, attack)
    shield = max(0, shield)
    absorbed = min(attack, shield)
    hp_damage = max(0, attack - shield)
    return StrikeResult(
        attack=attack,
        absorbed=absorbed,
        hp_damage=hp_damage,
        shield=shield - absorbed,
        hp=max(0, hp - hp_damage),
    )


def player_damage(attacker: MonsterCard, defender: MonsterCard) -> int:
    """Damage a defeated monster's owner takes; defense applies exactly once."""
    return max(0, attacker.attack - defender.defense)


def classify_outcome(player1: Player, player2: Player) -> Tuple[Outcome, Optional[str]]:
    p1_down = player1.hp <= 0
    p2_down = player2.hp <= 0
    if p1_down and p2_down:
        return Outcome.DRAW, None
    if p1_down:
        return Outcome.WINNER, player2.id
    if p2_down:
        return Outcome.WINNER, player1.id
    return Outcome.CONTINUE, None


def _ensure_eligible(player: Player, card: Card, arena_card: Optional[MonsterCard]) -> MonsterCard:
    if not isinstance(card, MonsterCard):
        raise CombatPreconditionError(f"{card.title} ({card.id}) is not a Monster card")
    held = player.has_card(card.id) or (arena_card is not None and arena_card.id == card.id)
    if not held:
        raise CombatPreconditionError(f"{card.title} ({card.id}) is not held by {player.name}")
    if card.is_defeated:
        raise CombatPreconditionError(f"{card.title} ({card.id}) is already defeated")
    return card


def _strike_line(attacker: MonsterCard, defender: MonsterCard, result: StrikeResult, verb: str) -> str:
    return (
        f"{attacker.title} {verb} {defender.title} for {result.attack}. "
        f"Shield absorbs {result.absorbed}. "
        f"{defender.title} takes {result.hp_damage} HP damage."
    )


def resolve_combat(
    player1: Player,
    card1: Card,
    player2: Player,
    card2: Card,
    arena: Sequence[Optional[MonsterCard]] = (None, None),
) -> CombatResult:
    """Resolve a simultaneous clash between ``card1`` and ``card2``.

    ``arena`` holds each player's active slot so cards already moved out of
    the hand still count as held. Both strikes read the pre-combat snapshots;
    neither card's shield loss affects the other's computation.
    """

    arena1 = arena[0] if len(arena) > 0 else None
    arena2 = arena[1] if len(arena) > 1 else None
    monster1 = _ensure_eligible(player1, card1, arena1)
    monster2 = _ensure_eligible(player2, card2, arena2)
    if monster1.id == monster2.id:
        raise CombatPreconditionError(f"{monster1.title} cannot fight itself")

    hit_on_2 = strike(monster1.attack, monster2.shield, monster2.hp)
    hit_on_1 = strike(monster2.attack, monster1.shield, monster1.hp)

    after1 = replace(monster1, shield=hit_on_1.shield, hp=hit_on_1.hp)
    after2 = replace(monster2, shield=hit_on_2.shield, hp=hit_on_2.hp)

    log: List[str] = [
        _strike_line(monster1, monster2, hit_on_2, "attacks"),
        _strike_line(monster2, monster1, hit_on_1, "counter-attacks"),
    ]

    damage_to_p1 = damage_to_p2 = 0
    if hit_on_1.defeated:
        damage_to_p1 = player_damage(monster2, monster1)
        log.append(f"{monster1.title} is defeated! {player1.name} takes {damage_to_p1} direct damage.")
    if hit_on_2.defeated:
        damage_to_p2 = player_damage(monster1, monster2)
        log.append(f"{monster2.title} is defeated! {player2.name} takes {damage_to_p2} direct damage.")

    # Spent cards are consumed whether they won, lost or drew.
    new_player1 = replace(
        player1.without_card(monster1.id),
        hp=max(0, player1.hp - damage_to_p1),
    )
    new_player2 = replace(
        player2.without_card(monster2.id),
        hp=max(0, player2.hp - damage_to_p2),
    )

    outcome, winner_id = classify_outcome(new_player1, new_player2)
    if outcome is Outcome.DRAW:
        log.append("It's a draw!")
    elif outcome is Outcome.WINNER:
        winner = new_player1 if winner_id == new_player1.id else new_player2
        log.append(f"{winner.name} wins!")

    logger.debug(
        "Combat %s vs %s: hp %d/%d, players %d/%d, outcome %s",
        monster1.id,
        monster2.id,
        after1.hp,
        after2.hp,
        new_player1.hp,
        new_player2.hp,
        outcome.value,
    )
    return CombatResult(
        player1=new_player1,
        player2=new_player2,
        card1=after1,
        card2=after2,
        discarded=(after1, after2),
        log=tuple(log),
        outcome=outcome,
        winner_id=winner_id,
        player_damage=(damage_to_p1, damage_to_p2),
    )


def resolve_direct_attack(attacker_owner: Player, card: Card, defender: Player) -> Tuple[Player, str]:
    """Strike the opposing player when they have no monster in play.

    With no defending monster there is no defense to subtract; the defender
    takes the full attack value.
    """

    if not isinstance(card, MonsterCard) or card.is_defeated:
        raise CombatPreconditionError(f"{card.title} cannot attack")
    damage = card.attack
    updated = replace(defender, hp=max(0, defender.hp - damage))
    line = f"{card.title} strikes {defender.name} directly for {damage} damage."
    logger.debug("Direct attack by %s (%s): %d damage", card.id, attacker_owner.id, damage)
    return updated, line


__all__ = [
    "Outcome",
    "StrikeResult",
    "CombatResult",
    "strike",
    "player_damage",
    "classify_outcome",
    "resolve_combat",
    "resolve_direct_attack",
]
