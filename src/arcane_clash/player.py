"""Scripted player agents for headless matches."""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Optional

from .controller import OperationRequest
from .duel import legal_actions
from .effects import SPELL_EFFECTS
from .models import SELECT_PHASES, GamePhase, GameState, MonsterCard, SpellCard


@dataclass
class PlayerMemory:
    """Simple rolling memory used by player agents."""

    thoughts: List[str] = field(default_factory=list)
    max_entries: int = 20

    def remember(self, entry: str) -> None:
        self.thoughts.append(entry)
        if len(self.thoughts) > self.max_entries:
            del self.thoughts[0]


def _strength(card: MonsterCard) -> tuple:
    return (card.attack, card.hp + card.shield, card.defense)


@dataclass
class PlayerAgent:
    """Greedy player: always fields its strongest monster.

    Concrete strategies may override :meth:`decide` to analyse the game
    snapshot and emit an :class:`OperationRequest`. ``None`` means the agent
    has nothing to do in the current phase.
    """

    player_id: str
    max_spells_per_turn: int = 2
    mulligan_size: int = 2
    memory: PlayerMemory = field(default_factory=PlayerMemory)

    def decide(self, state: GameState) -> Optional[OperationRequest]:
        index = state.player_index(self.player_id)
        if index is None or not state.may_act(self.player_id):
            return None
        if state.game_phase in SELECT_PHASES:
            return self._select(state, index)
        return self._duel_action(state, index)

    # ------------------------------------------------------------------
    # clash
    # ------------------------------------------------------------------
    def _select(self, state: GameState, index: int) -> Optional[OperationRequest]:
        hand = state.players[index].hand
        monsters = [c for c in hand if isinstance(c, MonsterCard) and not c.is_defeated]
        if monsters:
            card = max(monsters, key=_strength)
            self.memory.remember(f"Selected {card.title} ({card.attack} attack)")
        elif hand:
            card = hand[0]
            self.memory.remember(f"No monster in hand, cycling {card.title}")
        else:
            return None
        return self._request("select_card", card_id=card.id)

    # ------------------------------------------------------------------
    # duel
    # ------------------------------------------------------------------
    def _duel_action(self, state: GameState, index: int) -> Optional[OperationRequest]:
        player = state.players[index]
        actions = legal_actions(state, index, self.max_spells_per_turn)
        if not actions:
            return None

        if "mulligan" in actions:
            spells = [c.id for c in player.hand if isinstance(c, SpellCard)]
            keep_all = any(isinstance(c, MonsterCard) for c in player.hand)
            card_ids = [] if keep_all else spells[: self.mulligan_size]
            self.memory.remember(f"Mulligan {len(card_ids)} cards")
            return self._request("mulligan", card_ids=card_ids)
        if "cancel_swap" in actions:
            return self._request("cancel_swap")
        if "summon_monster" in actions:
            card = max(player.monsters_in_hand(), key=_strength)
            return self._request("summon_monster", card_id=card.id)
        if "cast_spell" in actions:
            spell = next(
                (c for c in player.hand if isinstance(c, SpellCard) and c.title in SPELL_EFFECTS),
                None,
            )
            if spell is not None:
                self.memory.remember(f"Cast {spell.title}")
                return self._request("cast_spell", card_id=spell.id)
        if "attack" in actions:
            return self._request("attack")
        if state.game_phase is GamePhase.PLAYER_ACTION:
            return self._request("end_turn")
        return None

    def _request(self, action: str, **payload: object) -> OperationRequest:
        return OperationRequest(actor_id=self.player_id, action=action, payload=dict(payload))


__all__ = ["PlayerAgent", "PlayerMemory"]
