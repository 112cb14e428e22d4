"""Card art and description generation backed by LangChain chat models.

Generation is fire-and-forget per card: every call ends in exactly one
``art_loaded`` / ``description_loaded`` request tagged with the card id and the
game generation it was issued for. Failures and timeouts produce a request
without a value, which the controller turns into the deterministic
placeholder. There is no retry loop here.
"""
from __future__ import annotations

import asyncio
import logging
from dataclasses import replace
from typing import Any, AsyncIterator, Iterable, List, Optional, Protocol

from langchain_core.language_models import BaseChatModel
from langchain_core.messages import HumanMessage
from pydantic import BaseModel, Field, ValidationError, field_validator

from .config import Settings
from .controller import GameController, OperationRequest
from .errors import ExternalGenerationFailure
from .models import Card, CardTemplate, CardType, default_description, placeholder_art

logger = logging.getLogger(__name__)

MAX_DESCRIPTION_WORDS = 15

ART_PROMPT = (
    'Create a unique, original piece of fantasy artwork for a trading card titled "{title}". '
    "The art must be an entirely new concept, not resembling existing game art or popular "
    "fantasy franchises. Style: painterly, detailed, evocative, high-fantasy. Ensure the image "
    "is suitable for a portrait-oriented card."
)

DESCRIPTION_PROMPT = """You are a creative writer and game designer for a fantasy trading card game.
The card title is "{title}".
The card type is "{card_type}".

If the card type is "Monster":
  Generate a very short, evocative, and thematic one-sentence flavor text suitable for the card.
  Example for "Flame Serpent": "Coils of fire that strike with burning venom."

If the card type is "Spell":
  Generate a concise description of its magical effect, generally a power-up for the caster
  or a negative effect on the opponent.
  Example for "Fireball": "Deals direct fire damage to an enemy creature or player."

The text MUST be {max_words} words or less. Do not include the card title.
Reply with the text only."""


# ---------------------------------------------------------------------------
# output schemas
# ---------------------------------------------------------------------------
class CardArt(BaseModel):
    """Generated art reference (URL or data URI)."""

    image_reference: str = Field(description="Image URL or data URI")

    @field_validator("image_reference")
    @classmethod
    def validate_reference(cls, v: str) -> str:
        v = v.strip()
        if not v.startswith(("data:image/", "http://", "https://")):
            raise ValueError("image_reference must be a data URI or an http(s) URL")
        return v


class CardDescription(BaseModel):
    """Short card text, trimmed to the word limit."""

    text: str = Field(description=f"At most {MAX_DESCRIPTION_WORDS} words")

    @field_validator("text")
    @classmethod
    def validate_text(cls, v: str) -> str:
        words = v.strip().strip('"').strip().split()
        if not words:
            raise ValueError("description is empty")
        return " ".join(words[:MAX_DESCRIPTION_WORDS])


class ArtGenerator(Protocol):
    async def generate(self, card_title: str) -> CardArt:
        ...


class DescriptionGenerator(Protocol):
    async def generate(self, card_title: str, card_type: CardType) -> CardDescription:
        ...


# ---------------------------------------------------------------------------
# LangChain implementations
# ---------------------------------------------------------------------------
def _extract_image_reference(content: Any) -> Optional[str]:
    """Find the first image in a chat message's content."""

    if isinstance(content, str):
        text = content.strip()
        return text if text.startswith(("data:image/", "http://", "https://")) else None
    if not isinstance(content, list):
        return None
    for block in content:
        if not isinstance(block, dict):
            continue
        kind = block.get("type")
        if kind == "image_url":
            image_url = block.get("image_url")
            if isinstance(image_url, dict):
                image_url = image_url.get("url")
            if image_url:
                return str(image_url)
        elif kind == "image":
            if block.get("url"):
                return str(block["url"])
            data = block.get("base64") or block.get("data")
            if data:
                mime_type = block.get("mime_type", "image/png")
                return f"data:{mime_type};base64,{data}"
    return None


def _message_text(content: Any) -> str:
    if isinstance(content, str):
        return content
    parts: List[str] = []
    for block in content or []:
        if isinstance(block, str):
            parts.append(block)
        elif isinstance(block, dict) and block.get("type") == "text":
            parts.append(str(block.get("text", "")))
    return " ".join(parts)


class LangChainArtGenerator:
    """Ask an image-capable chat model for card artwork."""

    def __init__(self, llm: BaseChatModel) -> None:
        self.llm = llm

    async def generate(self, card_title: str) -> CardArt:
        try:
            message = await self.llm.ainvoke([HumanMessage(content=ART_PROMPT.format(title=card_title))])
        except Exception as exc:  # noqa: BLE001 - provider errors vary by backend
            raise ExternalGenerationFailure(card_title, str(exc)) from exc
        reference = _extract_image_reference(message.content)
        if reference is None:
            raise ExternalGenerationFailure(card_title, "model returned no image")
        try:
            return CardArt(image_reference=reference)
        except ValidationError as exc:
            raise ExternalGenerationFailure(card_title, str(exc)) from exc


class LangChainDescriptionGenerator:
    """Ask a chat model for a short flavour or effect text."""

    def __init__(self, llm: BaseChatModel) -> None:
        self.llm = llm

    async def generate(self, card_title: str, card_type: CardType) -> CardDescription:
        prompt = DESCRIPTION_PROMPT.format(
            title=card_title,
            card_type=CardType(card_type).value,
            max_words=MAX_DESCRIPTION_WORDS,
        )
        try:
            message = await self.llm.ainvoke([HumanMessage(content=prompt)])
            return CardDescription(text=_message_text(message.content))
        except Exception as exc:  # noqa: BLE001 - provider and validation errors alike
            raise ExternalGenerationFailure(card_title, str(exc)) from exc


def build_chat_model(settings: Settings) -> BaseChatModel:
    """Construct the configured chat model.

    Provider packages are optional extras; only the selected one is imported.
    """

    provider = settings.llm_provider.lower()
    if provider == "openai":
        from langchain_openai import ChatOpenAI

        return ChatOpenAI(model=settings.llm_model or "gpt-4o-mini")
    if provider == "anthropic":
        from langchain_anthropic import ChatAnthropic

        return ChatAnthropic(model=settings.llm_model or "claude-3-5-haiku-latest")
    raise ValueError(f"Unsupported LLM provider: {settings.llm_provider}")


# ---------------------------------------------------------------------------
# request/response correlation
# ---------------------------------------------------------------------------
async def _art_request(
    generator: ArtGenerator, card: Card, generation: int, timeout: float
) -> OperationRequest:
    image_reference: Optional[str] = None
    try:
        art = await asyncio.wait_for(generator.generate(card.title), timeout=timeout)
        image_reference = art.image_reference
    except ExternalGenerationFailure as exc:
        logger.warning("Art generation failed for %s, using placeholder: %s", card.title, exc.reason)
    except asyncio.TimeoutError:
        logger.warning("Art generation timed out for %s, using placeholder", card.title)
    return OperationRequest(
        actor_id="system",
        action="art_loaded",
        payload={"card_id": card.id, "generation": generation, "image_reference": image_reference},
    )


async def _description_request(
    generator: DescriptionGenerator, card: Card, generation: int, timeout: float
) -> OperationRequest:
    text: Optional[str] = None
    try:
        description = await asyncio.wait_for(generator.generate(card.title, card.card_type), timeout=timeout)
        text = description.text
    except ExternalGenerationFailure as exc:
        logger.warning("Description generation failed for %s, using default: %s", card.title, exc.reason)
    except asyncio.TimeoutError:
        logger.warning("Description generation timed out for %s, using default", card.title)
    return OperationRequest(
        actor_id="system",
        action="description_loaded",
        payload={"card_id": card.id, "generation": generation, "text": text},
    )


async def conjure_assets(
    cards: Iterable[Card],
    generation: int,
    art_generator: Optional[ArtGenerator] = None,
    description_generator: Optional[DescriptionGenerator] = None,
    timeout: float = 30.0,
) -> AsyncIterator[OperationRequest]:
    """Launch one task per missing asset and yield requests as they finish."""

    tasks = []
    for card in cards:
        if art_generator is not None and card.is_loading_art:
            tasks.append(asyncio.ensure_future(_art_request(art_generator, card, generation, timeout)))
        if description_generator is not None and card.is_loading_description:
            tasks.append(
                asyncio.ensure_future(_description_request(description_generator, card, generation, timeout))
            )
    for finished in asyncio.as_completed(tasks):
        yield await finished


async def apply_generated_assets(
    controller: GameController,
    art_generator: Optional[ArtGenerator] = None,
    description_generator: Optional[DescriptionGenerator] = None,
    timeout: float = 30.0,
) -> int:
    """Generate assets for the controller's current game and feed them back.

    Responses are dispatched through the controller like any other intent, so
    a restart in the meantime simply makes them stale. Returns how many
    responses were applied.
    """

    state = controller.state
    cards = [card for _, card in state.iter_cards()]
    applied = 0
    async for request in conjure_assets(
        cards, state.generation, art_generator, description_generator, timeout
    ):
        result = controller.dispatch(request)
        if result.success:
            applied += 1
    logger.info("Applied %d generated assets to game %s", applied, state.game_id)
    return applied


# ---------------------------------------------------------------------------
# offline pre-generation
# ---------------------------------------------------------------------------
async def pregenerate_templates(
    templates: Iterable[CardTemplate],
    art_generator: Optional[ArtGenerator] = None,
    description_generator: Optional[DescriptionGenerator] = None,
    timeout: float = 30.0,
    delay: float = 0.0,
) -> List[CardTemplate]:
    """Fill in missing art and descriptions so games can skip generation.

    Cards are processed one at a time with ``delay`` seconds between them to
    stay under provider rate limits. A failed call leaves the placeholder or
    default text in the template.
    """

    completed: List[CardTemplate] = []
    templates = list(templates)
    for position, template in enumerate(templates, start=1):
        logger.info("(%d/%d) Processing %s", position, len(templates), template.title)
        art_url = template.art_url
        description = template.description
        if art_url is None and art_generator is not None:
            try:
                art = await asyncio.wait_for(art_generator.generate(template.title), timeout=timeout)
                art_url = art.image_reference
            except (ExternalGenerationFailure, asyncio.TimeoutError) as exc:
                logger.warning("Using placeholder art for %s: %s", template.title, exc)
        if description is None and description_generator is not None:
            try:
                result = await asyncio.wait_for(
                    description_generator.generate(template.title, template.card_type), timeout=timeout
                )
                description = result.text
            except (ExternalGenerationFailure, asyncio.TimeoutError) as exc:
                logger.warning("Using default description for %s: %s", template.title, exc)
        completed.append(
            replace(
                template,
                art_url=art_url or placeholder_art(template.title),
                description=description or default_description(template.card_type),
            )
        )
        if delay and position < len(templates):
            await asyncio.sleep(delay)
    return completed


__all__ = [
    "CardArt",
    "CardDescription",
    "ArtGenerator",
    "DescriptionGenerator",
    "LangChainArtGenerator",
    "LangChainDescriptionGenerator",
    "build_chat_model",
    "conjure_assets",
    "apply_generated_assets",
    "pregenerate_templates",
]
