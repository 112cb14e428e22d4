"""Core datamodels for the Arcane Clash engine."""
from __future__ import annotations

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Callable, ClassVar, Dict, FrozenSet, Iterator, List, Optional, Tuple, Union
from urllib.parse import quote

HAND_SIZE = 5
PLAYER_MAX_HP = 100
PLACEHOLDER_ART_URL = "https://placehold.co/300x400.png?text={title}"


class CardType(str, Enum):
    """Closed set of card variants."""

    MONSTER = "Monster"
    SPELL = "Spell"


DEFAULT_DESCRIPTIONS: Dict[CardType, str] = {
    CardType.MONSTER: "A mysterious entity from the arcane realms.",
    CardType.SPELL: "Unleashes a potent magical effect.",
}


def placeholder_art(title: str) -> str:
    """Deterministic art reference used whenever generated art is missing."""
    return PLACEHOLDER_ART_URL.format(title=quote(title))


def default_description(card_type: CardType) -> str:
    return DEFAULT_DESCRIPTIONS[CardType(card_type)]


# ---------------------------------------------------------------------------
# catalog templates
# ---------------------------------------------------------------------------
@dataclass(frozen=True)
class CardTemplate:
    """Immutable catalog definition of a card, shared by every instance."""

    title: str
    card_type: CardType
    melee: int = 0
    magic: int = 0
    defense: int = 0
    hp: int = 0
    shield: int = 0
    magic_shield: int = 0
    description: Optional[str] = None
    art_url: Optional[str] = None
    template_id: Optional[str] = None

    @property
    def key(self) -> str:
        """Store key; catalogs are keyed by title unless told otherwise."""
        return self.template_id or self.title

    def to_document(self) -> Dict[str, object]:
        document: Dict[str, object] = {
            "title": self.title,
            "card_type": self.card_type.value,
            "description": self.description,
            "art_url": self.art_url,
        }
        if self.card_type is CardType.MONSTER:
            document.update(
                melee=self.melee,
                magic=self.magic,
                defense=self.defense,
                hp=self.hp,
                shield=self.shield,
                magic_shield=self.magic_shield,
            )
        return document


# ---------------------------------------------------------------------------
# live card instances
# ---------------------------------------------------------------------------
@dataclass(frozen=True)
class StatusEffect:
    """Timed modifier attached to a monster, e.g. ``regenerate``."""

    id: str
    type: str
    duration: int
    value: int = 0

    def tick(self) -> Optional["StatusEffect"]:
        """Consume one owner turn. Returns ``None`` once the effect expires."""
        remaining = max(0, self.duration - 1)
        if remaining == 0:
            return None
        return replace(self, duration=remaining)


@dataclass(frozen=True)
class MonsterCard:
    """Combat-capable card instance."""

    card_type: ClassVar[CardType] = CardType.MONSTER

    id: str
    title: str
    melee: int
    magic: int
    defense: int
    hp: int
    max_hp: int
    shield: int = 0
    max_shield: int = 0
    magic_shield: int = 0
    max_magic_shield: int = 0
    status_effects: Tuple[StatusEffect, ...] = ()
    description: Optional[str] = None
    art_url: Optional[str] = None
    is_loading_art: bool = False
    is_loading_description: bool = False

    @property
    def attack(self) -> int:
        return self.melee + self.magic

    @property
    def is_defeated(self) -> bool:
        return self.hp <= 0

    @property
    def art_reference(self) -> str:
        return self.art_url or placeholder_art(self.title)

    @property
    def display_description(self) -> str:
        return self.description or default_description(self.card_type)


@dataclass(frozen=True)
class SpellCard:
    """Non-combat card; its effect is resolved by :mod:`arcane_clash.effects`."""

    card_type: ClassVar[CardType] = CardType.SPELL

    id: str
    title: str
    description: Optional[str] = None
    art_url: Optional[str] = None
    is_loading_art: bool = False
    is_loading_description: bool = False

    @property
    def art_reference(self) -> str:
        return self.art_url or placeholder_art(self.title)

    @property
    def display_description(self) -> str:
        return self.description or default_description(self.card_type)


Card = Union[MonsterCard, SpellCard]


def card_to_dict(card: Card) -> Dict[str, object]:
    """JSON-safe view of a card for readers of the game state."""

    payload: Dict[str, object] = {
        "id": card.id,
        "title": card.title,
        "card_type": card.card_type.value,
        "art_url": card.art_reference,
        "description": card.display_description,
        "is_loading_art": card.is_loading_art,
        "is_loading_description": card.is_loading_description,
    }
    if isinstance(card, MonsterCard):
        payload.update(
            melee=card.melee,
            magic=card.magic,
            defense=card.defense,
            hp=card.hp,
            max_hp=card.max_hp,
            shield=card.shield,
            max_shield=card.max_shield,
            magic_shield=card.magic_shield,
            max_magic_shield=card.max_magic_shield,
            status_effects=[
                {"id": e.id, "type": e.type, "duration": e.duration, "value": e.value}
                for e in card.status_effects
            ],
        )
    return payload


# ---------------------------------------------------------------------------
# players
# ---------------------------------------------------------------------------
@dataclass(frozen=True)
class Player:
    """A participant and the hand they own exclusively."""

    id: str
    name: str
    hp: int = PLAYER_MAX_HP
    max_hp: int = PLAYER_MAX_HP
    hand: Tuple[Card, ...] = ()
    turn_count: int = 0
    has_mulliganed: bool = False
    spells_played_this_turn: int = 0

    @property
    def is_defeated(self) -> bool:
        return self.hp <= 0

    def find_card(self, card_id: str) -> Optional[Card]:
        for card in self.hand:
            if card.id == card_id:
                return card
        return None

    def has_card(self, card_id: str) -> bool:
        return self.find_card(card_id) is not None

    def without_card(self, card_id: str) -> "Player":
        return replace(self, hand=tuple(c for c in self.hand if c.id != card_id))

    def with_cards(self, cards: Tuple[Card, ...]) -> "Player":
        return replace(self, hand=self.hand + tuple(cards))

    def monsters_in_hand(self) -> List[MonsterCard]:
        return [c for c in self.hand if isinstance(c, MonsterCard) and not c.is_defeated]


# ---------------------------------------------------------------------------
# phases and log
# ---------------------------------------------------------------------------
class GamePhase(str, Enum):
    """Closed set of controller states."""

    INITIAL = "initial"
    LOADING_ART = "loading_art"
    PLAYER1_SELECT_CARD = "player1_select_card"
    PLAYER2_SELECT_CARD = "player2_select_card"
    COMBAT_ANIMATION = "combat_animation"
    MULLIGAN = "mulligan_phase"
    PLAYER_ACTION = "player_action_phase"
    SELECTING_SWAP_MONSTER = "selecting_swap_monster_phase"
    SPELL_EFFECT = "spell_effect_phase"
    COMBAT = "combat_phase"
    TURN_RESOLUTION = "turn_resolution_phase"
    GAME_OVER = "game_over"


SELECT_PHASES: Tuple[GamePhase, GamePhase] = (
    GamePhase.PLAYER1_SELECT_CARD,
    GamePhase.PLAYER2_SELECT_CARD,
)

# Phases in which a player (as opposed to the system) is expected to act.
PLAYER_PHASES: FrozenSet[GamePhase] = frozenset(
    {
        GamePhase.PLAYER1_SELECT_CARD,
        GamePhase.PLAYER2_SELECT_CARD,
        GamePhase.MULLIGAN,
        GamePhase.PLAYER_ACTION,
        GamePhase.SELECTING_SWAP_MONSTER,
    }
)


class GameMode(str, Enum):
    """``clash`` is the select-only flow, ``duel`` the extended action flow."""

    CLASH = "clash"
    DUEL = "duel"


@dataclass(frozen=True)
class GameLogEntry:
    """Structured log entry recorded for every state transition."""

    actor: str
    action: str
    message: str
    payload: Dict[str, object] = field(default_factory=dict, hash=False)
    random_seed: Optional[str] = None


@dataclass(frozen=True)
class PendingAction:
    """Action awaiting its presentation delay before being resolved."""

    kind: str  # "spell" or "attack"
    actor_index: int
    card_id: Optional[str] = None


# ---------------------------------------------------------------------------
# game state
# ---------------------------------------------------------------------------
@dataclass(frozen=True)
class GameState:
    """Authoritative, immutable snapshot of one game."""

    game_id: str
    players: Tuple[Player, Player]
    deck: Tuple[Card, ...] = ()
    discard_pile: Tuple[Card, ...] = ()
    current_player_index: int = 0
    first_player_index: int = 0
    game_phase: GamePhase = GamePhase.INITIAL
    selected_card_p1: Optional[MonsterCard] = None
    selected_card_p2: Optional[MonsterCard] = None
    winner_id: Optional[str] = None
    log: Tuple[GameLogEntry, ...] = ()
    mode: GameMode = GameMode.CLASH
    generation: int = 0
    pending_art: FrozenSet[str] = frozenset()
    pending_action: Optional[PendingAction] = None
    round_number: int = 0
    seed: Optional[str] = None

    # ------------------------------------------------------------------
    # accessors
    # ------------------------------------------------------------------
    @property
    def current_player(self) -> Player:
        return self.players[self.current_player_index]

    @property
    def winner(self) -> Optional[Player]:
        for player in self.players:
            if player.id == self.winner_id:
                return player
        return None

    @property
    def is_over(self) -> bool:
        return self.game_phase is GamePhase.GAME_OVER

    def player_index(self, actor_id: str) -> Optional[int]:
        for index, player in enumerate(self.players):
            if player.id == actor_id:
                return index
        return None

    def arena_card(self, index: int) -> Optional[MonsterCard]:
        return self.selected_card_p1 if index == 0 else self.selected_card_p2

    @property
    def arena(self) -> Tuple[Optional[MonsterCard], Optional[MonsterCard]]:
        return (self.selected_card_p1, self.selected_card_p2)

    def may_act(self, actor_id: str) -> bool:
        """Whether ``actor_id`` owns the current player-facing phase."""
        if self.game_phase not in PLAYER_PHASES:
            return False
        return self.player_index(actor_id) == self.current_player_index

    # ------------------------------------------------------------------
    # functional updates
    # ------------------------------------------------------------------
    def with_player(self, index: int, player: Player) -> "GameState":
        players = list(self.players)
        players[index] = player
        return replace(self, players=(players[0], players[1]))

    def with_arena(self, index: int, card: Optional[MonsterCard]) -> "GameState":
        if index == 0:
            return replace(self, selected_card_p1=card)
        return replace(self, selected_card_p2=card)

    def with_log(self, *entries: GameLogEntry) -> "GameState":
        return replace(self, log=self.log + tuple(entries))

    def map_card(self, card_id: str, update: Callable[[Card], Card]) -> "GameState":
        """Apply ``update`` to the card with ``card_id`` wherever it lives."""

        def _apply(cards: Tuple[Card, ...]) -> Tuple[Card, ...]:
            return tuple(update(c) if c.id == card_id else c for c in cards)

        players = tuple(replace(p, hand=_apply(p.hand)) for p in self.players)
        arena = [update(c) if c is not None and c.id == card_id else c for c in self.arena]
        return replace(
            self,
            players=(players[0], players[1]),
            deck=_apply(self.deck),
            discard_pile=_apply(self.discard_pile),
            selected_card_p1=arena[0],
            selected_card_p2=arena[1],
        )

    # ------------------------------------------------------------------
    # invariants
    # ------------------------------------------------------------------
    def iter_cards(self) -> Iterator[Tuple[str, Card]]:
        for player in self.players:
            for card in player.hand:
                yield f"hand:{player.id}", card
        for card in self.deck:
            yield "deck", card
        for card in self.discard_pile:
            yield "discard", card
        for index, card in enumerate(self.arena):
            if card is not None:
                yield f"arena:{self.players[index].id}", card

    def card_locations(self) -> Dict[str, str]:
        """Map every card id to the single zone holding it."""

        locations: Dict[str, str] = {}
        for zone, card in self.iter_cards():
            if card.id in locations:
                raise ValueError(
                    f"Card {card.id} is in both {locations[card.id]} and {zone}"
                )
            locations[card.id] = zone
        return locations

    def assert_card_conservation(self, expected_ids: Optional[FrozenSet[str]] = None) -> None:
        """Ensure no card is duplicated and, optionally, none went missing."""

        locations = self.card_locations()
        if expected_ids is not None and frozenset(locations) != expected_ids:
            missing = sorted(expected_ids - frozenset(locations))
            extra = sorted(frozenset(locations) - expected_ids)
            raise ValueError(f"Card set changed: missing={missing} unexpected={extra}")

    def snapshot(self) -> Dict[str, object]:
        """Produce a serialisable snapshot for readers and tooling."""

        return {
            "game_id": self.game_id,
            "generation": self.generation,
            "mode": self.mode.value,
            "phase": self.game_phase.value,
            "current_player_index": self.current_player_index,
            "first_player_index": self.first_player_index,
            "round_number": self.round_number,
            "winner_id": self.winner_id,
            "players": [
                {
                    "id": p.id,
                    "name": p.name,
                    "hp": p.hp,
                    "max_hp": p.max_hp,
                    "turn_count": p.turn_count,
                    "has_mulliganed": p.has_mulliganed,
                    "spells_played_this_turn": p.spells_played_this_turn,
                    "hand": [card_to_dict(c) for c in p.hand],
                }
                for p in self.players
            ],
            "arena": [card_to_dict(c) if c is not None else None for c in self.arena],
            "deck_size": len(self.deck),
            "discard_pile": [card_to_dict(c) for c in self.discard_pile],
            "pending_art": sorted(self.pending_art),
            "log": [entry.message for entry in self.log],
        }


# ---------------------------------------------------------------------------
# derived predicates
# ---------------------------------------------------------------------------
def is_turn_of(state: GameState, index: int) -> bool:
    return state.game_phase in PLAYER_PHASES and state.current_player_index == index


def is_first_turn(player: Player) -> bool:
    return player.turn_count <= 1


def can_attack(state: GameState, index: int) -> bool:
    return (
        state.game_phase is GamePhase.PLAYER_ACTION
        and state.current_player_index == index
        and state.arena_card(index) is not None
    )


def can_cast_spell(state: GameState, index: int, max_spells_per_turn: int) -> bool:
    player = state.players[index]
    return (
        state.game_phase is GamePhase.PLAYER_ACTION
        and state.current_player_index == index
        and not is_first_turn(player)
        and player.spells_played_this_turn < max_spells_per_turn
    )


__all__ = [
    "HAND_SIZE",
    "PLAYER_MAX_HP",
    "CardType",
    "CardTemplate",
    "StatusEffect",
    "MonsterCard",
    "SpellCard",
    "Card",
    "Player",
    "GamePhase",
    "GameMode",
    "GameLogEntry",
    "PendingAction",
    "GameState",
    "SELECT_PHASES",
    "PLAYER_PHASES",
    "card_to_dict",
    "placeholder_art",
    "default_description",
    "is_turn_of",
    "is_first_turn",
    "can_attack",
    "can_cast_spell",
]
