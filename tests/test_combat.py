from __future__ import annotations

import random

import pytest

from arcane_clash.combat import (
    Outcome,
    classify_outcome,
    player_damage,
    resolve_combat,
    resolve_direct_attack,
    strike,
)
from arcane_clash.errors import CombatPreconditionError
from arcane_clash.models import Player


def _players(card1, card2, hp1: int = 100, hp2: int = 100):
    return (
        Player(id="player1", name="Player 1", hp=hp1, hand=(card1,)),
        Player(id="player2", name="Player 2", hp=hp2, hand=(card2,)),
    )


@pytest.mark.parametrize("attack,shield", [(0, 0), (5, 10), (10, 10), (12, 4), (30, 0), (0, 7)])
def test_shield_absorbs_before_hp(attack: int, shield: int) -> None:
    result = strike(attack, shield, 20)
    assert result.hp_damage == max(0, attack - shield)
    assert result.shield == max(0, shield - attack)
    assert result.absorbed == min(attack, shield)
    if attack <= shield:
        assert result.hp == 20


def test_end_to_end_scenario(monster) -> None:
    card_a = monster("A", melee=10, shield=0, hp=20)
    card_b = monster("B", melee=5, shield=5, hp=20)
    player1, player2 = _players(card_a, card_b)

    result = resolve_combat(player1, card_a, player2, card_b)

    assert result.card2.hp == 15
    assert result.card2.shield == 0
    assert result.card1.hp == 15
    assert result.outcome is Outcome.CONTINUE
    assert result.winner_id is None
    assert {c.id for c in result.discarded} == {"A", "B"}
    assert result.player1.hand == ()
    assert result.player2.hand == ()
    assert result.player1.hp == result.player2.hp == 100
    assert result.log[0] == "A attacks B for 10. Shield absorbs 5. B takes 5 HP damage."
    assert result.log[1].startswith("B counter-attacks A")


def test_lethal_with_defense_scenario(monster) -> None:
    card_c = monster("C", melee=20, shield=0, hp=10)
    # Built directly: the factory would refuse a monster with no attack.
    card_d = monster("D", melee=0, magic=0, shield=0, hp=5, defense=3)
    player1, player2 = _players(card_c, card_d, hp2=10)

    result = resolve_combat(player1, card_c, player2, card_d)

    assert result.card2.hp == 0
    assert result.card1.hp == 10
    assert result.player_damage == (0, 17)
    assert result.player2.hp == 0
    assert result.outcome is Outcome.WINNER
    assert result.winner_id == "player1"
    assert "D is defeated! Player 2 takes 17 direct damage." in result.log
    assert result.log[-1] == "Player 1 wins!"


def test_simultaneous_strikes_use_pre_combat_shields(monster) -> None:
    # Under sequential resolution the second strike would see a broken shield.
    left = monster("L", melee=10, shield=10, hp=5)
    right = monster("R", melee=10, shield=10, hp=5)
    player1, player2 = _players(left, right)

    result = resolve_combat(player1, left, player2, right)

    assert result.card1.hp == result.card2.hp == 5
    assert result.card1.shield == result.card2.shield == 0
    assert result.outcome is Outcome.CONTINUE


def test_resolution_is_symmetric(monster) -> None:
    first = monster("X", melee=7, magic=4, shield=3, hp=9, defense=2)
    second = monster("Y", melee=2, magic=9, shield=8, hp=12, defense=5)

    forward = resolve_combat(*_interleave(_players(first, second), first, second))
    backward = resolve_combat(*_interleave(_players(second, first), second, first))

    assert forward.card1 == backward.card2
    assert forward.card2 == backward.card1


def _interleave(players, card1, card2):
    return players[0], card1, players[1], card2


def test_mutual_defeat_with_low_hp_is_a_draw(monster) -> None:
    left = monster("L", melee=30, hp=5)
    right = monster("R", melee=30, hp=5)
    player1, player2 = _players(left, right, hp1=10, hp2=10)

    result = resolve_combat(player1, left, player2, right)

    assert result.outcome is Outcome.DRAW
    assert result.winner_id is None
    assert result.player1.hp == result.player2.hp == 0
    assert result.log[-1] == "It's a draw!"


def test_defense_only_mitigates_player_damage(monster) -> None:
    attacker = monster("A", melee=8, defense=0, hp=30)
    defender = monster("B", melee=1, defense=6, hp=8)
    assert player_damage(attacker, defender) == 2
    player1, player2 = _players(attacker, defender)

    result = resolve_combat(player1, attacker, player2, defender)

    assert result.card2.hp == 0
    assert result.player2.hp == 98


@pytest.mark.parametrize(
    "hp1,hp2,expected,winner",
    [
        (5, 0, Outcome.WINNER, "player1"),
        (0, 3, Outcome.WINNER, "player2"),
        (0, 0, Outcome.DRAW, None),
        (1, 1, Outcome.CONTINUE, None),
    ],
)
def test_terminal_detection(hp1, hp2, expected, winner) -> None:
    player1 = Player(id="player1", name="Player 1", hp=hp1)
    player2 = Player(id="player2", name="Player 2", hp=hp2)
    assert classify_outcome(player1, player2) == (expected, winner)


def test_values_never_go_negative(monster) -> None:
    rng = random.Random(11)
    for index in range(200):
        card1 = monster(f"a{index}", melee=rng.randint(0, 40), hp=rng.randint(1, 40), shield=rng.randint(0, 20),
                        defense=rng.randint(0, 10))
        card2 = monster(f"b{index}", melee=rng.randint(0, 40), hp=rng.randint(1, 40), shield=rng.randint(0, 20),
                        defense=rng.randint(0, 10))
        player1, player2 = _players(card1, card2, hp1=rng.randint(1, 100), hp2=rng.randint(1, 100))
        result = resolve_combat(player1, card1, player2, card2)
        for card in (result.card1, result.card2):
            assert card.hp >= 0
            assert card.shield >= 0
            assert card.magic_shield >= 0
        assert result.player1.hp >= 0
        assert result.player2.hp >= 0


def test_spell_cannot_fight(monster, spell) -> None:
    card = monster("A")
    fireball = spell("S")
    player1 = Player(id="player1", name="Player 1", hand=(card,))
    player2 = Player(id="player2", name="Player 2", hand=(fireball,))
    with pytest.raises(CombatPreconditionError):
        resolve_combat(player1, card, player2, fireball)


def test_card_must_be_held_and_alive(monster) -> None:
    card_a = monster("A")
    card_b = monster("B")
    player1, player2 = _players(card_a, card_b)
    stranger = monster("Z")
    with pytest.raises(CombatPreconditionError):
        resolve_combat(player1, card_a, player2, stranger)

    fallen = monster("F", hp=0)
    player2 = Player(id="player2", name="Player 2", hand=(fallen,))
    with pytest.raises(CombatPreconditionError):
        resolve_combat(player1, card_a, player2, fallen)


def test_arena_cards_count_as_held(monster) -> None:
    card_a = monster("A")
    card_b = monster("B")
    player1 = Player(id="player1", name="Player 1")
    player2 = Player(id="player2", name="Player 2")

    result = resolve_combat(player1, card_a, player2, card_b, arena=(card_a, card_b))

    assert {c.id for c in result.discarded} == {"A", "B"}


def test_direct_attack_ignores_defense(monster) -> None:
    card = monster("A", melee=9, magic=3)
    attacker = Player(id="player1", name="Player 1")
    defender = Player(id="player2", name="Player 2", hp=10)

    updated, line = resolve_direct_attack(attacker, card, defender)

    assert updated.hp == 0
    assert line == "A strikes Player 2 directly for 12 damage."
