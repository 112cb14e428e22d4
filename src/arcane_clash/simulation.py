"""Utility helpers to run headless matches between scripted agents."""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Sequence

from .catalog import CatalogClient
from .config import Settings
from .controller import GameController, OperationRequest
from .game_tools import SYSTEM_ACTOR
from .generation import ArtGenerator, DescriptionGenerator, apply_generated_assets
from .models import CardTemplate, GamePhase, GameState
from .player import PlayerAgent

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class MatchSummary:
    """Outcome of one headless match."""

    game_id: str
    winner_id: Optional[str]
    rounds: int
    steps: int
    final_hp: Dict[str, int]
    log: Sequence[str]
    finished: bool

    @property
    def is_draw(self) -> bool:
        return self.finished and self.winner_id is None


def load_templates(settings: Settings) -> List[CardTemplate]:
    """Read every template from the configured catalog."""

    client = CatalogClient(settings.catalog_dsn)
    try:
        return client.fetch_all()
    finally:
        client.close()


def _moved_on(controller: GameController, generation: int) -> bool:
    if controller.state.generation == generation:
        return False
    logger.info(
        "Game %s moved on to generation %d; dropping loading for generation %d",
        controller.game_id,
        controller.state.generation,
        generation,
    )
    return True


def finish_loading(
    controller: GameController,
    art_generator: Optional[ArtGenerator] = None,
    description_generator: Optional[DescriptionGenerator] = None,
    generation: Optional[int] = None,
) -> None:
    """Leave ``loading_art``: generate assets when possible, else use placeholders.

    ``generation`` pins the work to one deal. Once the game has been restarted
    past it, nothing is sent, so a newer deal keeps waiting for its own art.
    """

    if generation is None:
        generation = controller.state.generation
    if _moved_on(controller, generation):
        return
    if controller.state.game_phase is not GamePhase.LOADING_ART:
        return
    if art_generator is not None or description_generator is not None:
        asyncio.run(
            apply_generated_assets(
                controller,
                art_generator,
                description_generator,
                timeout=controller.settings.generation_timeout,
            )
        )
        if _moved_on(controller, generation):
            return
    for card_id in sorted(controller.state.pending_art):
        controller.dispatch(
            OperationRequest(
                actor_id=SYSTEM_ACTOR,
                action="art_loaded",
                payload={"card_id": card_id, "generation": generation, "image_reference": None},
            )
        )


def run_match(
    controller: GameController,
    agents: Optional[Iterable[PlayerAgent]] = None,
    max_steps: int = 2000,
) -> MatchSummary:
    """Let ``agents`` play the controller's game until it ends or stalls."""

    if agents is None:
        agents = [
            PlayerAgent(
                player_id=player.id,
                max_spells_per_turn=controller.settings.max_spells_per_turn,
                mulligan_size=controller.settings.mulligan_size,
            )
            for player in controller.state.players
        ]
    by_id = {agent.player_id: agent for agent in agents}

    steps = 0
    while steps < max_steps and not controller.state.is_over:
        steps += len(controller.settle())
        state = controller.state
        if state.is_over:
            break
        agent = by_id.get(state.current_player.id)
        request = agent.decide(state) if agent is not None else None
        if request is None:
            logger.warning("No agent action in %s for %s; stopping", state.game_phase.value, state.current_player.id)
            break
        result = controller.dispatch(request)
        steps += 1
        if not result.success:
            logger.warning("Agent %s was rejected: %s", request.actor_id, result.message)
            break

    return summarize(controller.state, steps)


def summarize(state: GameState, steps: int) -> MatchSummary:
    return MatchSummary(
        game_id=state.game_id,
        winner_id=state.winner_id,
        rounds=state.round_number,
        steps=steps,
        final_hp={player.id: player.hp for player in state.players},
        log=tuple(entry.message for entry in state.log),
        finished=state.is_over,
    )


def play_match(
    templates: Iterable[CardTemplate],
    settings: Optional[Settings] = None,
    seed: Optional[str] = None,
    art_generator: Optional[ArtGenerator] = None,
    description_generator: Optional[DescriptionGenerator] = None,
) -> MatchSummary:
    """Create a game, settle its assets and play it out with greedy agents."""

    controller = GameController(templates, settings, seed=seed)
    finish_loading(controller, art_generator, description_generator)
    summary = run_match(controller)
    logger.info(
        "Match %s finished=%s winner=%s after %d rounds",
        summary.game_id,
        summary.finished,
        summary.winner_id,
        summary.rounds,
    )
    return summary


__all__ = ["MatchSummary", "load_templates", "finish_loading", "run_match", "summarize", "play_match"]
