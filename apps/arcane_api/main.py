"""FastAPI service exposing game snapshots and accepting player intents."""
from __future__ import annotations

import asyncio
import logging
from dataclasses import replace
from typing import Any, Dict, List, Optional

from fastapi import BackgroundTasks, Depends, FastAPI, HTTPException
from pydantic import BaseModel, Field

from arcane_clash.catalog import CatalogClient
from arcane_clash.config import Settings
from arcane_clash.controller import GameController, OperationRequest
from arcane_clash.errors import CatalogError
from arcane_clash.game_tools import SYSTEM_ACTOR
from arcane_clash.generation import (
    LangChainArtGenerator,
    LangChainDescriptionGenerator,
    apply_generated_assets,
    build_chat_model,
)
from arcane_clash.models import CardTemplate, GameMode, GamePhase
from arcane_clash.simulation import finish_loading

logger = logging.getLogger(__name__)

app = FastAPI(title="Arcane Clash API", version="0.1.0")


# Request/Response models
class CreateGameRequest(BaseModel):
    """Request to start a new game."""
    mode: Optional[GameMode] = None
    seed: Optional[str] = Field(default=None, pattern=r"^[0-9a-fA-F]+$")
    roll_stats: Optional[bool] = None
    player_names: List[str] = Field(default_factory=lambda: ["Player 1", "Player 2"], min_length=2, max_length=2)


class IntentRequest(BaseModel):
    """A player intent such as ``select_card`` or ``attack``."""
    actor_id: str
    action: str
    payload: Dict[str, Any] = Field(default_factory=dict)


class GameResponse(BaseModel):
    """Read-only game snapshot."""
    game_id: str
    generation: int
    mode: str
    phase: str
    current_player_index: int
    winner_id: Optional[str]
    state: Dict[str, Any]


class IntentResponse(BaseModel):
    success: bool
    message: str
    game: GameResponse


class LogEntryResponse(BaseModel):
    """Log entry response."""
    actor: str
    action: str
    message: str
    payload: Dict[str, Any]
    random_seed: Optional[str]


# Global state (one process, one event loop)
_controllers: Dict[str, GameController] = {}


def get_settings() -> Settings:
    return Settings.from_env()


def get_templates(settings: Settings = Depends(get_settings)) -> List[CardTemplate]:
    """Load card templates; an unusable catalog means no game can start."""
    try:
        client = CatalogClient(settings.catalog_dsn)
        try:
            return client.fetch_all()
        finally:
            client.close()
    except CatalogError as exc:
        logger.error("Cannot load card catalog: %s", exc)
        raise HTTPException(status_code=503, detail=f"Cannot start game: {exc}") from exc


def _get_controller(game_id: str) -> GameController:
    controller = _controllers.get(game_id)
    if controller is None:
        raise HTTPException(status_code=404, detail="Game not found")
    return controller


def _game_response(controller: GameController) -> GameResponse:
    state = controller.state
    return GameResponse(
        game_id=state.game_id,
        generation=state.generation,
        mode=state.mode.value,
        phase=state.game_phase.value,
        current_player_index=state.current_player_index,
        winner_id=state.winner_id,
        state=state.snapshot(),
    )


# ---------------------------------------------------------------------------
# background work
# ---------------------------------------------------------------------------
async def _generate_assets(controller: GameController, generation: Optional[int] = None) -> None:
    """Fill art and descriptions for one generation of the controller's game."""

    if generation is None:
        generation = controller.state.generation
    if controller.state.generation != generation:
        logger.debug("Skipping asset generation for stale generation %d", generation)
        return
    try:
        llm = build_chat_model(controller.settings)
    except (ImportError, ValueError) as exc:
        logger.warning("Asset generation unavailable, using placeholders: %s", exc)
        finish_loading(controller, generation=generation)
        return
    await apply_generated_assets(
        controller,
        LangChainArtGenerator(llm),
        LangChainDescriptionGenerator(llm),
        timeout=controller.settings.generation_timeout,
    )
    finish_loading(controller, generation=generation)


async def _resolve_after_delay(controller: GameController, generation: int, delay: float) -> None:
    """Apply the pending system intent once the presentation delay elapses."""

    await asyncio.sleep(delay)
    if controller.state.generation != generation:
        logger.debug("Skipping resolution for stale generation %d", generation)
        return
    controller.settle()


def _schedule_follow_up(controller: GameController, background_tasks: BackgroundTasks) -> None:
    state = controller.state
    if state.game_phase is GamePhase.LOADING_ART:
        background_tasks.add_task(_generate_assets, controller, state.generation)
    elif controller.pending_system_intent() is not None:
        delay = controller.settings.combat_delay
        if delay > 0:
            background_tasks.add_task(_resolve_after_delay, controller, state.generation, delay)
        else:
            controller.settle()


# ---------------------------------------------------------------------------
# endpoints
# ---------------------------------------------------------------------------
@app.post("/games", response_model=GameResponse, status_code=201)
async def create_game(
    request: CreateGameRequest,
    background_tasks: BackgroundTasks,
    settings: Settings = Depends(get_settings),
    templates: List[CardTemplate] = Depends(get_templates),
):
    """Create a new game."""
    if request.mode is not None:
        settings = replace(settings, mode=request.mode)
    if request.roll_stats is not None:
        settings = replace(settings, roll_stats=request.roll_stats)
    try:
        controller = GameController(templates, settings, seed=request.seed, player_names=request.player_names)
    except CatalogError as exc:
        logger.error("Cannot start game: %s", exc)
        raise HTTPException(status_code=503, detail=f"Cannot start game: {exc}") from exc
    _controllers[controller.game_id] = controller
    _schedule_follow_up(controller, background_tasks)
    return _game_response(controller)


@app.get("/games/{game_id}", response_model=GameResponse)
async def get_game(game_id: str):
    """Get the current game snapshot."""
    return _game_response(_get_controller(game_id))


@app.post("/games/{game_id}/intents", response_model=IntentResponse)
async def submit_intent(game_id: str, request: IntentRequest, background_tasks: BackgroundTasks):
    """Apply a player intent; rejected intents leave the game unchanged."""
    controller = _get_controller(game_id)
    if request.actor_id == SYSTEM_ACTOR:
        raise HTTPException(status_code=403, detail="System intents cannot be submitted by clients")
    result = controller.dispatch(
        OperationRequest(actor_id=request.actor_id, action=request.action, payload=request.payload)
    )
    if not result.success:
        raise HTTPException(status_code=409, detail=result.message)
    _schedule_follow_up(controller, background_tasks)
    return IntentResponse(success=True, message=result.message, game=_game_response(controller))


@app.post("/games/{game_id}/restart", response_model=GameResponse)
async def restart_game(game_id: str, background_tasks: BackgroundTasks):
    """Discard the game and deal a fresh one under the same id."""
    controller = _get_controller(game_id)
    result = controller.restart()
    if not result.success:
        raise HTTPException(status_code=503, detail=f"Cannot start game: {result.message}")
    _schedule_follow_up(controller, background_tasks)
    return _game_response(controller)


@app.delete("/games/{game_id}", status_code=204)
async def delete_game(game_id: str):
    """Forget a finished or abandoned game.

    Games are otherwise kept for the life of the process. Pending background
    work for a deleted game still runs against its controller but is no
    longer reachable from any endpoint.
    """
    _get_controller(game_id)
    del _controllers[game_id]
    logger.info("Deleted game %s", game_id)


@app.get("/games/{game_id}/log", response_model=List[LogEntryResponse])
async def get_game_log(game_id: str):
    """Get the structured battle log."""
    controller = _get_controller(game_id)
    return [
        LogEntryResponse(
            actor=entry.actor,
            action=entry.action,
            message=entry.message,
            payload=entry.payload,
            random_seed=entry.random_seed,
        )
        for entry in controller.state.log
    ]


@app.get("/health")
async def health():
    """Health check endpoint."""
    return {"status": "ok", "games": len(_controllers)}
