from __future__ import annotations

from typing import Callable, Iterable, List, Optional

import pytest

from arcane_clash.config import Settings
from arcane_clash.models import (
    CardTemplate,
    CardType,
    GameMode,
    GamePhase,
    GameState,
    MonsterCard,
    Player,
    SpellCard,
    StatusEffect,
)


def _monster(
    card_id: str,
    melee: int = 10,
    magic: int = 0,
    defense: int = 0,
    hp: int = 20,
    shield: int = 0,
    magic_shield: int = 0,
    title: Optional[str] = None,
    status_effects: Iterable[StatusEffect] = (),
) -> MonsterCard:
    return MonsterCard(
        id=card_id,
        title=title or card_id,
        melee=melee,
        magic=magic,
        defense=defense,
        hp=hp,
        max_hp=max(hp, 1),
        shield=shield,
        max_shield=shield,
        magic_shield=magic_shield,
        max_magic_shield=magic_shield,
        status_effects=tuple(status_effects),
    )


def _spell(card_id: str, title: str = "Fireball") -> SpellCard:
    return SpellCard(id=card_id, title=title)


def _state(
    p1_hand: Iterable = (),
    p2_hand: Iterable = (),
    deck: Iterable = (),
    phase: GamePhase = GamePhase.PLAYER1_SELECT_CARD,
    current: int = 0,
    hp: tuple = (100, 100),
    mode: GameMode = GameMode.CLASH,
    arena: tuple = (None, None),
    turn_counts: tuple = (0, 0),
) -> GameState:
    return GameState(
        game_id="test-game",
        players=(
            Player(id="player1", name="Player 1", hp=hp[0], hand=tuple(p1_hand), turn_count=turn_counts[0]),
            Player(id="player2", name="Player 2", hp=hp[1], hand=tuple(p2_hand), turn_count=turn_counts[1]),
        ),
        deck=tuple(deck),
        game_phase=phase,
        current_player_index=current,
        mode=mode,
        selected_card_p1=arena[0],
        selected_card_p2=arena[1],
    )


@pytest.fixture
def monster() -> Callable[..., MonsterCard]:
    return _monster


@pytest.fixture
def spell() -> Callable[..., SpellCard]:
    return _spell


@pytest.fixture
def make_state() -> Callable[..., GameState]:
    return _state


@pytest.fixture
def templates() -> List[CardTemplate]:
    """A small catalog: twelve monsters and four spells, all with text."""

    monsters = [
        CardTemplate(
            title=f"Test Monster {i}",
            card_type=CardType.MONSTER,
            melee=5 + i,
            magic=i % 3,
            defense=2,
            hp=20 + i,
            shield=3,
            magic_shield=2,
            description="A creature made for testing.",
        )
        for i in range(12)
    ]
    spells = [
        CardTemplate(title=title, card_type=CardType.SPELL, description="A spell made for testing.")
        for title in ("Fireball", "Healing Light", "Arcane Shield", "Regenerate")
    ]
    return monsters + spells


@pytest.fixture
def clash_settings() -> Settings:
    return Settings(mode=GameMode.CLASH)


@pytest.fixture
def duel_settings() -> Settings:
    return Settings(mode=GameMode.DUEL)
