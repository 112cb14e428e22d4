"""Integration tests for the FastAPI game service."""
from __future__ import annotations

import asyncio
from typing import Iterator, List

import pytest
from fastapi.testclient import TestClient

from apps.arcane_api import main as api
from arcane_clash.config import Settings
from arcane_clash.controller import GameController
from arcane_clash.generation import CardArt, CardDescription
from arcane_clash.models import CardTemplate, CardType, GamePhase


@pytest.fixture
def client(templates) -> Iterator[TestClient]:
    api.app.dependency_overrides[api.get_settings] = lambda: Settings(combat_delay=0, llm_provider="none")
    api.app.dependency_overrides[api.get_templates] = lambda: templates
    try:
        yield TestClient(api.app)
    finally:
        api.app.dependency_overrides.clear()
        api._controllers.clear()


def _first_monster(game: dict, index: int) -> str:
    hand = game["state"]["players"][index]["hand"]
    return next(card["id"] for card in hand if card["card_type"] == "Monster")


def test_health(client) -> None:
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "ok"


def test_create_and_play_a_round(client) -> None:
    response = client.post("/games", json={"seed": "c0ffee"})
    assert response.status_code == 201
    game = response.json()
    assert game["phase"] == "player1_select_card"
    assert game["generation"] == 0
    game_id = game["game_id"]

    first = client.post(
        f"/games/{game_id}/intents",
        json={"actor_id": "player1", "action": "select_card", "payload": {"card_id": _first_monster(game, 0)}},
    )
    assert first.status_code == 200
    assert first.json()["game"]["phase"] == "player2_select_card"

    second = client.post(
        f"/games/{game_id}/intents",
        json={"actor_id": "player2", "action": "select_card", "payload": {"card_id": _first_monster(game, 1)}},
    )
    assert second.status_code == 200
    after = second.json()["game"]
    # Zero presentation delay resolves combat before the response.
    assert after["state"]["round_number"] == 1
    assert after["phase"] == "player1_select_card"
    assert after["state"]["arena"] == [None, None]

    log = client.get(f"/games/{game_id}/log").json()
    assert log[0]["random_seed"] == "c0ffee"
    assert any(entry["action"] == "combat" for entry in log)


def test_rejected_intent_returns_conflict(client) -> None:
    game = client.post("/games", json={}).json()
    before = client.get(f"/games/{game['game_id']}").json()

    response = client.post(
        f"/games/{game['game_id']}/intents",
        json={"actor_id": "player2", "action": "select_card", "payload": {"card_id": _first_monster(game, 1)}},
    )

    assert response.status_code == 409
    assert client.get(f"/games/{game['game_id']}").json() == before


def test_clients_cannot_send_system_intents(client) -> None:
    game = client.post("/games", json={}).json()
    response = client.post(
        f"/games/{game['game_id']}/intents",
        json={"actor_id": "system", "action": "resolve_combat"},
    )
    assert response.status_code == 403


def test_unknown_game_is_not_found(client) -> None:
    assert client.get("/games/nope").status_code == 404
    assert client.get("/games/nope/log").status_code == 404


def test_duel_mode_starts_with_mulligan(client) -> None:
    game = client.post("/games", json={"mode": "duel", "player_names": ["Ada", "Grace"]}).json()
    assert game["mode"] == "duel"
    assert game["phase"] == "mulligan_phase"
    assert game["current_player_index"] == game["state"]["first_player_index"]
    assert [p["name"] for p in game["state"]["players"]] == ["Ada", "Grace"]


def test_restart_keeps_the_id_and_bumps_generation(client) -> None:
    game = client.post("/games", json={}).json()
    restarted = client.post(f"/games/{game['game_id']}/restart")
    assert restarted.status_code == 200
    body = restarted.json()
    assert body["game_id"] == game["game_id"]
    assert body["generation"] == 1


def test_unavailable_generation_falls_back_to_placeholders(client, templates) -> None:
    api.app.dependency_overrides[api.get_settings] = lambda: Settings(
        generate_assets=True, combat_delay=0, llm_provider="none"
    )
    game = client.post("/games", json={}).json()
    assert game["phase"] == "loading_art"

    current = client.get(f"/games/{game['game_id']}").json()

    assert current["phase"] == "player1_select_card"
    for card in current["state"]["players"][0]["hand"]:
        assert card["art_url"].startswith("https://placehold.co/")
        assert not card["is_loading_art"]


def test_empty_catalog_cannot_start_a_game(client) -> None:
    empty: List[CardTemplate] = []
    api.app.dependency_overrides[api.get_templates] = lambda: empty
    response = client.post("/games", json={})
    assert response.status_code == 503
    assert response.json()["detail"].startswith("Cannot start game")


def test_invalid_seed_is_rejected(client) -> None:
    assert client.post("/games", json={"seed": "not-hex"}).status_code == 422


def test_deleted_game_is_forgotten(client) -> None:
    game = client.post("/games", json={}).json()
    game_id = game["game_id"]
    assert client.get("/health").json()["games"] == 1

    response = client.delete(f"/games/{game_id}")

    assert response.status_code == 204
    assert client.get(f"/games/{game_id}").status_code == 404
    assert client.get("/health").json()["games"] == 0
    assert client.delete(f"/games/{game_id}").status_code == 404


class RestartingArtGenerator:
    """Restarts the game while its first piece of art is being drawn."""

    def __init__(self, controller: GameController) -> None:
        self.controller = controller
        self.calls = 0

    async def generate(self, card_title: str) -> CardArt:
        self.calls += 1
        if self.calls == 1:
            assert self.controller.restart().success
        return CardArt(image_reference="https://art.example.com/card.png")


class QuietDescriptionGenerator:
    async def generate(self, card_title: str, card_type: CardType) -> CardDescription:
        return CardDescription(text="Unused.")


def test_restart_during_generation_leaves_new_deal_loading(templates, monkeypatch) -> None:
    controller = GameController(templates, Settings(generate_assets=True, combat_delay=0), seed="5a1e")
    art = RestartingArtGenerator(controller)
    monkeypatch.setattr(api, "build_chat_model", lambda settings: object())
    monkeypatch.setattr(api, "LangChainArtGenerator", lambda llm: art)
    monkeypatch.setattr(api, "LangChainDescriptionGenerator", lambda llm: QuietDescriptionGenerator())

    asyncio.run(api._generate_assets(controller))

    state = controller.state
    assert art.calls > 1
    assert state.generation == 1
    assert state.game_phase is GamePhase.LOADING_ART
    assert state.pending_art == frozenset(card.id for _, card in state.iter_cards())


def test_stale_asset_task_does_not_touch_a_restarted_game(templates) -> None:
    controller = GameController(templates, Settings(generate_assets=True, llm_provider="none"), seed="5a1f")
    stale_generation = controller.state.generation
    controller.restart()

    asyncio.run(api._generate_assets(controller, stale_generation))

    assert controller.state.generation == stale_generation + 1
    assert controller.state.game_phase is GamePhase.LOADING_ART
