"""Turn catalog templates into live, per-game card instances."""
from __future__ import annotations

import random
import re
from typing import Iterable, List, Optional, Tuple

from .errors import CatalogError
from .models import Card, CardTemplate, CardType, MonsterCard, SpellCard

_SLUG_RE = re.compile(r"[^a-z0-9]+")

_MONSTER_STATS = ("melee", "magic", "defense", "hp", "shield", "magic_shield")


def _slugify(title: str) -> str:
    return _SLUG_RE.sub("-", title.lower()).strip("-") or "card"


def _make_card_id(title: str, index: int, rng: random.Random) -> str:
    return f"card-{index}-{_slugify(title)}-{rng.getrandbits(32):08x}"


def validate_template(template: CardTemplate) -> None:
    """Raise :class:`CatalogError` if ``template`` cannot produce a card."""

    if not template.title or not str(template.title).strip():
        raise CatalogError("Card template is missing a title")
    try:
        card_type = CardType(template.card_type)
    except ValueError as exc:
        raise CatalogError(
            f"Card {template.title}: invalid card type {template.card_type!r}"
        ) from exc
    if card_type is not CardType.MONSTER:
        return

    for stat in _MONSTER_STATS:
        value = getattr(template, stat)
        if not isinstance(value, int) or isinstance(value, bool) or value < 0:
            raise CatalogError(f"Card {template.title}: {stat} must be a non-negative integer, got {value!r}")
    if template.melee == 0 and template.magic == 0:
        raise CatalogError(f"Card {template.title}: melee or magic must be positive")
    if template.hp <= 0:
        raise CatalogError(f"Card {template.title}: hp must be positive")


def create_card(template: CardTemplate, index: int, rng: Optional[random.Random] = None) -> Card:
    """Create a full-health instance of ``template``.

    Art and description are copied when the template carries them; otherwise
    the loading flags are raised so the generation collaborators can fill them
    in later.
    """

    validate_template(template)
    rng = rng or random.Random()
    card_id = _make_card_id(template.title, index, rng)

    if CardType(template.card_type) is CardType.SPELL:
        return SpellCard(
            id=card_id,
            title=template.title,
            description=template.description,
            art_url=template.art_url,
            is_loading_art=template.art_url is None,
            is_loading_description=template.description is None,
        )

    return MonsterCard(
        id=card_id,
        title=template.title,
        melee=template.melee,
        magic=template.magic,
        defense=template.defense,
        hp=template.hp,
        max_hp=template.hp,
        shield=template.shield,
        max_shield=template.shield,
        magic_shield=template.magic_shield,
        max_magic_shield=template.magic_shield,
        description=template.description,
        art_url=template.art_url,
        is_loading_art=template.art_url is None,
        is_loading_description=template.description is None,
    )


def roll_monster_template(title: str, rng: Optional[random.Random] = None) -> CardTemplate:
    """Procedurally roll monster stats for ``title``.

    A fair coin decides whether the monster is melee or magic focused; the
    chosen stat is drawn from 8..20 and the other stays at zero.
    """

    rng = rng or random.Random()
    melee = magic = 0
    if rng.random() < 0.5:
        melee = rng.randint(8, 20)
    else:
        magic = rng.randint(8, 20)
    if melee == 0 and magic == 0:
        if rng.random() < 0.5:
            melee = rng.randint(5, 15)
        else:
            magic = rng.randint(5, 15)

    max_hp = rng.randint(15, 35)
    shield = rng.randint(0, 15)
    magic_shield = rng.randint(0, 15)
    focus = "fierce melee" if melee > 0 else "powerful magic"
    return CardTemplate(
        title=title,
        card_type=CardType.MONSTER,
        melee=melee,
        magic=magic,
        defense=rng.randint(1, 10),
        hp=max_hp,
        shield=shield,
        magic_shield=magic_shield,
        description=f"A {title} specializing in {focus}.",
    )


def build_card_pool(templates: Iterable[CardTemplate], rng: Optional[random.Random] = None) -> Tuple[Card, ...]:
    """Instantiate every template once; the pool index feeds the card id."""

    rng = rng or random.Random()
    cards: List[Card] = [create_card(t, index, rng) for index, t in enumerate(templates)]
    if not cards:
        raise CatalogError("Card catalog is empty")
    return tuple(cards)


__all__ = ["create_card", "validate_template", "roll_monster_template", "build_card_pool"]
