from __future__ import annotations

import random
from dataclasses import replace

import pytest

from arcane_clash.config import Settings
from arcane_clash.controller import OperationRequest, new_game, reduce
from arcane_clash.duel import legal_actions
from arcane_clash.errors import IllegalActionError
from arcane_clash.models import HAND_SIZE, GameMode, GamePhase, StatusEffect


def _intent(actor: str, action: str, **payload) -> OperationRequest:
    return OperationRequest(actor_id=actor, action=action, payload=payload)


RESOLVE = OperationRequest(actor_id="system", action="resolve_pending")
ADVANCE = OperationRequest(actor_id="system", action="advance_turn")


@pytest.fixture
def duel_turn(make_state):
    """Player 1's action phase on their second turn."""

    def _build(p1_hand=(), p2_hand=(), deck=(), arena=(None, None), hp=(100, 100), turn_counts=(2, 1)):
        return make_state(
            p1_hand,
            p2_hand,
            deck,
            phase=GamePhase.PLAYER_ACTION,
            mode=GameMode.DUEL,
            arena=arena,
            hp=hp,
            turn_counts=turn_counts,
        )

    return _build


# ---------------------------------------------------------------------------
# mulligan and first turn
# ---------------------------------------------------------------------------
def test_mulligan_then_first_turn(templates, duel_settings) -> None:
    state = new_game(templates, duel_settings, seed="d0")
    assert state.game_phase is GamePhase.MULLIGAN
    first = state.first_player_index
    second = 1 - first
    assert state.current_player_index == first
    opener, follower = state.players[first], state.players[second]
    returned = [c.id for c in opener.hand[:2]]
    deck_size = len(state.deck)
    expected = frozenset(c.id for _, c in state.iter_cards())

    state = reduce(state, _intent(opener.id, "mulligan", card_ids=returned), rng=random.Random(1),
                   settings=duel_settings)

    assert len(state.players[first].hand) == HAND_SIZE
    assert len(state.deck) == deck_size
    assert state.log[-1].random_seed is not None
    assert state.players[first].has_mulliganed
    assert state.current_player_index == second
    state.assert_card_conservation(expected)

    state = reduce(state, _intent(follower.id, "mulligan", card_ids=[]), settings=duel_settings)

    assert state.game_phase is GamePhase.PLAYER_ACTION
    assert state.current_player_index == first
    assert state.players[first].turn_count == 1
    assert state.players[second].turn_count == 0
    assert state.log[-1].message == f"{opener.name}'s turn 1 begins."


def test_mulligan_limits(templates, duel_settings) -> None:
    state = new_game(templates, duel_settings, seed="d1")
    opener = state.players[state.first_player_index].id
    follower = state.players[1 - state.first_player_index].id
    hand = [c.id for c in state.players[state.first_player_index].hand]
    with pytest.raises(IllegalActionError):
        reduce(state, _intent(opener, "mulligan", card_ids=hand[:3]), settings=duel_settings)
    with pytest.raises(IllegalActionError):
        reduce(state, _intent(opener, "mulligan", card_ids=[hand[0], hand[0]]), settings=duel_settings)
    with pytest.raises(IllegalActionError):
        reduce(state, _intent(follower, "mulligan", card_ids=[]), settings=duel_settings)
    with pytest.raises(IllegalActionError):
        reduce(state, _intent(opener, "mulligan", card_ids=["not-in-hand"]), settings=duel_settings)


def test_coin_flip_is_seeded_and_logged(templates, duel_settings) -> None:
    state = new_game(templates, duel_settings, seed="c01f")
    again = new_game(templates, duel_settings, seed="c01f")

    assert state.first_player_index == again.first_player_index
    flip = next(entry for entry in state.log if entry.action == "coin_flip")
    assert flip.random_seed is not None
    assert flip.random_seed == next(e for e in again.log if e.action == "coin_flip").random_seed
    assert flip.payload["player_id"] == state.players[state.first_player_index].id
    assert state.snapshot()["first_player_index"] == state.first_player_index


def test_either_player_can_win_the_coin_flip(templates, duel_settings) -> None:
    openers = {new_game(templates, duel_settings, seed=f"{n:x}").first_player_index for n in range(1, 41)}
    assert openers == {0, 1}


def test_clash_games_do_not_flip(templates, clash_settings) -> None:
    state = new_game(templates, clash_settings, seed="c01f")
    assert state.first_player_index == 0
    assert state.current_player_index == 0
    assert all(entry.action != "coin_flip" for entry in state.log)


def test_no_spells_on_the_first_turn(spell, duel_turn) -> None:
    state = duel_turn(p1_hand=[spell("s")], turn_counts=(1, 0))
    with pytest.raises(IllegalActionError):
        reduce(state, _intent("player1", "cast_spell", card_id="s"))
    assert legal_actions(state, 0, 2) == ["end_turn"]


# ---------------------------------------------------------------------------
# spells
# ---------------------------------------------------------------------------
def test_spell_limit_per_turn(spell, duel_turn, duel_settings) -> None:
    state = duel_turn(p1_hand=[spell(f"s{i}", "Stone Skin") for i in range(3)])
    for card_id in ("s0", "s1"):
        state = reduce(state, _intent("player1", "cast_spell", card_id=card_id), settings=duel_settings)
        assert state.game_phase is GamePhase.SPELL_EFFECT
        state = reduce(state, RESOLVE, settings=duel_settings)
        assert state.game_phase is GamePhase.PLAYER_ACTION

    assert state.players[0].spells_played_this_turn == 2
    assert [c.id for c in state.discard_pile] == ["s0", "s1"]
    with pytest.raises(IllegalActionError):
        reduce(state, _intent("player1", "cast_spell", card_id="s2"), settings=duel_settings)


def test_spell_damage_resolves_after_the_delay(monster, spell, duel_turn) -> None:
    state = duel_turn(p1_hand=[spell("f", "Fireball")], arena=(None, monster("B", hp=20, magic_shield=5)))
    state = reduce(state, _intent("player1", "cast_spell", card_id="f"))
    assert state.arena_card(1).hp == 20
    assert state.pending_action.card_id == "f"

    state = reduce(state, RESOLVE)

    assert state.arena_card(1).hp == 10
    assert state.pending_action is None


def test_lethal_spell_ends_the_game(spell, duel_turn) -> None:
    state = duel_turn(p1_hand=[spell("f", "Fireball")], hp=(100, 10))
    state = reduce(state, _intent("player1", "cast_spell", card_id="f"))
    state = reduce(state, RESOLVE)
    assert state.game_phase is GamePhase.GAME_OVER
    assert state.winner_id == "player1"


def test_casting_a_monster_is_rejected(monster, duel_turn) -> None:
    state = duel_turn(p1_hand=[monster("A")])
    with pytest.raises(IllegalActionError):
        reduce(state, _intent("player1", "cast_spell", card_id="A"))


# ---------------------------------------------------------------------------
# summon and attack
# ---------------------------------------------------------------------------
def test_summon_requires_an_empty_slot(monster, spell, duel_turn) -> None:
    state = duel_turn(p1_hand=[monster("A"), monster("B"), spell("s")])
    state = reduce(state, _intent("player1", "summon_monster", card_id="A"))
    assert state.arena_card(0).id == "A"
    assert [c.id for c in state.players[0].hand] == ["B", "s"]
    with pytest.raises(IllegalActionError):
        reduce(state, _intent("player1", "summon_monster", card_id="B"))

    empty_slot = duel_turn(p1_hand=[spell("s")])
    with pytest.raises(IllegalActionError):
        reduce(empty_slot, _intent("player1", "summon_monster", card_id="s"))


def test_attack_against_a_monster(monster, duel_turn) -> None:
    attacker = monster("A", melee=10, hp=20)
    defender = monster("B", melee=5, shield=5, hp=20)
    state = duel_turn(p1_hand=[monster("h")], deck=[monster("d0"), monster("d1")], arena=(attacker, defender))

    state = reduce(state, _intent("player1", "attack"))
    assert state.game_phase is GamePhase.COMBAT
    state = reduce(state, RESOLVE)

    assert state.game_phase is GamePhase.TURN_RESOLUTION
    assert state.arena == (None, None)
    assert {c.id for c in state.discard_pile} == {"A", "B"}
    assert "A attacks B for 10. Shield absorbs 5. B takes 5 HP damage." in [e.message for e in state.log]

    state = reduce(state, ADVANCE)

    assert [c.id for c in state.players[0].hand] == ["h", "d0", "d1"]
    assert state.current_player_index == 1
    assert state.players[1].turn_count == 2
    assert state.players[1].spells_played_this_turn == 0
    assert state.game_phase is GamePhase.PLAYER_ACTION


def test_direct_attack_keeps_the_attacker(monster, duel_turn) -> None:
    state = duel_turn(arena=(monster("A", melee=9, magic=3), None))
    state = reduce(state, _intent("player1", "attack"))
    state = reduce(state, RESOLVE)
    assert state.players[1].hp == 88
    assert state.arena_card(0).id == "A"
    assert state.game_phase is GamePhase.TURN_RESOLUTION


def test_lethal_direct_attack(monster, duel_turn) -> None:
    state = duel_turn(arena=(monster("A", melee=30), None), hp=(100, 10))
    state = reduce(state, _intent("player1", "attack"))
    state = reduce(state, RESOLVE)
    assert state.game_phase is GamePhase.GAME_OVER
    assert state.winner_id == "player1"


def test_attack_needs_an_active_monster(duel_turn) -> None:
    with pytest.raises(IllegalActionError):
        reduce(duel_turn(), _intent("player1", "attack"))


def test_only_the_system_resolves(monster, duel_turn) -> None:
    state = reduce(duel_turn(arena=(monster("A"), None)), _intent("player1", "attack"))
    with pytest.raises(IllegalActionError):
        reduce(state, _intent("player1", "resolve_pending"))
    with pytest.raises(IllegalActionError):
        reduce(state, _intent("player2", "end_turn"))


# ---------------------------------------------------------------------------
# swap
# ---------------------------------------------------------------------------
def test_swap_returns_the_old_monster_to_hand(monster, duel_turn) -> None:
    state = duel_turn(p1_hand=[monster("h0"), monster("h1")], arena=(monster("A"), None))
    state = reduce(state, _intent("player1", "initiate_swap"))
    assert state.game_phase is GamePhase.SELECTING_SWAP_MONSTER

    state = reduce(state, _intent("player1", "choose_swap", card_id="h1"))

    assert state.arena_card(0).id == "h1"
    assert [c.id for c in state.players[0].hand] == ["h0", "A"]
    assert state.game_phase is GamePhase.PLAYER_ACTION


def test_swap_with_a_full_hand_discards_the_old_monster(monster, duel_turn) -> None:
    hand = [monster(f"h{i}") for i in range(HAND_SIZE)]
    state = duel_turn(p1_hand=hand, arena=(monster("A"), None))
    state = reduce(state, _intent("player1", "initiate_swap"))
    state = reduce(state, _intent("player1", "choose_swap", card_id="h0"))

    assert state.arena_card(0).id == "h0"
    assert len(state.players[0].hand) == HAND_SIZE - 1
    assert [c.id for c in state.discard_pile] == ["A"]


def test_cancel_swap(monster, spell, duel_turn) -> None:
    state = duel_turn(p1_hand=[monster("h0"), spell("s")], arena=(monster("A"), None))
    state = reduce(state, _intent("player1", "initiate_swap"))
    with pytest.raises(IllegalActionError):
        reduce(state, _intent("player1", "choose_swap", card_id="s"))
    state = reduce(state, _intent("player1", "cancel_swap"))
    assert state.game_phase is GamePhase.PLAYER_ACTION
    assert state.arena_card(0).id == "A"


def test_swap_needs_a_monster_in_hand(monster, spell, duel_turn) -> None:
    state = duel_turn(p1_hand=[spell("s")], arena=(monster("A"), None))
    with pytest.raises(IllegalActionError):
        reduce(state, _intent("player1", "initiate_swap"))


# ---------------------------------------------------------------------------
# turn upkeep
# ---------------------------------------------------------------------------
def test_regenerate_ticks_at_the_start_of_the_owner_turn(monster, make_state) -> None:
    effect = StatusEffect(id="r", type="regenerate", duration=1, value=5)
    wounded = replace(monster("A", hp=30), hp=10, status_effects=(effect,))
    state = make_state(
        phase=GamePhase.TURN_RESOLUTION,
        current=1,
        mode=GameMode.DUEL,
        arena=(wounded, None),
        turn_counts=(1, 1),
    )

    state = reduce(state, ADVANCE)

    active = state.arena_card(0)
    assert active.hp == 15
    assert active.status_effects == ()
    messages = [e.message for e in state.log]
    assert "A regenerates 5 HP." in messages
    assert "Regenerate on A wears off." in messages


def test_turn_limit_ends_on_hp(make_state) -> None:
    state = make_state(phase=GamePhase.TURN_RESOLUTION, mode=GameMode.DUEL, turn_counts=(1, 1), hp=(40, 60))
    state = reduce(state, ADVANCE, settings=Settings(mode=GameMode.DUEL, max_rounds=1))
    assert state.game_phase is GamePhase.GAME_OVER
    assert state.winner_id == "player2"


def test_end_turn_hands_over_after_top_up(monster, duel_turn) -> None:
    state = duel_turn(p1_hand=[monster("h")], deck=[monster("d0")])
    state = reduce(state, _intent("player1", "end_turn"))
    assert state.game_phase is GamePhase.TURN_RESOLUTION
    state = reduce(state, ADVANCE)
    assert [c.id for c in state.players[0].hand] == ["h", "d0"]
    assert state.current_player_index == 1


# ---------------------------------------------------------------------------
# modes and legal actions
# ---------------------------------------------------------------------------
def test_actions_are_bound_to_their_mode(monster, make_state, duel_turn) -> None:
    clash = make_state([monster("A")], [monster("B")])
    with pytest.raises(IllegalActionError):
        reduce(clash, _intent("player1", "summon_monster", card_id="A"))

    duel = duel_turn(p1_hand=[monster("A")])
    with pytest.raises(IllegalActionError):
        reduce(duel, _intent("player1", "select_card", card_id="A"))


def test_legal_actions_follow_the_board(monster, spell, duel_turn) -> None:
    state = duel_turn(p1_hand=[monster("h"), spell("s")], arena=(monster("A"), None))
    assert legal_actions(state, 0, 2) == ["cast_spell", "attack", "initiate_swap", "end_turn"]
    assert legal_actions(state, 1, 2) == []

    state = duel_turn(p1_hand=[monster("h"), spell("s")])
    assert legal_actions(state, 0, 2) == ["summon_monster", "cast_spell", "end_turn"]
