"""Card catalog storage: read templates by type and seed them idempotently."""
from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Iterable, List, Mapping, Optional

import psycopg
from psycopg.types.json import Jsonb

from .errors import CatalogError
from .models import CardTemplate, CardType

logger = logging.getLogger(__name__)

BUNDLED_CATALOG = Path(__file__).parent / "data" / "cards.json"

# Documents written by the browser seeding tool use camelCase keys.
_FIELD_ALIASES = {
    "cardType": "card_type",
    "magicShield": "magic_shield",
    "maxMagicShield": "magic_shield",
    "maxShield": "shield",
    "maxHp": "hp",
    "artUrl": "art_url",
}

_STAT_FIELDS = ("melee", "magic", "defense", "hp", "shield", "magic_shield")


def _normalise_document(document: Mapping[str, Any]) -> Dict[str, Any]:
    normalised: Dict[str, Any] = {}
    for key, value in document.items():
        target = _FIELD_ALIASES.get(key, key)
        # The max* variants win over current values; templates describe full health.
        if target in normalised and not key.startswith("max"):
            continue
        normalised[target] = value
    return normalised


def template_from_document(document: Mapping[str, Any], template_id: Optional[str] = None) -> CardTemplate:
    """Map a stored document to a :class:`CardTemplate`.

    Raises:
        CatalogError: if the title or card type is missing or a stat is not an
            integer.
    """

    data = _normalise_document(document)
    title = data.get("title")
    if not title:
        raise CatalogError(f"Card document {template_id or document!r} has no title")
    try:
        card_type = CardType(data.get("card_type"))
    except ValueError as exc:
        raise CatalogError(f"Card {title}: invalid card type {data.get('card_type')!r}") from exc

    stats: Dict[str, int] = {}
    if card_type is CardType.MONSTER:
        for name in _STAT_FIELDS:
            value = data.get(name, 0)
            try:
                stats[name] = int(value)
            except (TypeError, ValueError) as exc:
                raise CatalogError(f"Card {title}: {name} must be an integer, got {value!r}") from exc

    return CardTemplate(
        title=str(title),
        card_type=card_type,
        description=data.get("description") or None,
        art_url=data.get("art_url") or None,
        template_id=template_id,
        **stats,
    )


def load_templates_json(path: str | Path = BUNDLED_CATALOG) -> List[CardTemplate]:
    """Load templates from a JSON list such as the bundled ``cards.json``."""

    path = Path(path)
    try:
        raw = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as exc:
        raise CatalogError(f"Cannot read card catalog {path}: {exc}") from exc
    if not isinstance(raw, list):
        raise CatalogError(f"Card catalog {path} must contain a JSON list")
    return [template_from_document(entry) for entry in raw]


@dataclass
class InMemoryCatalog:
    """Fallback store used for testing and local play."""

    documents: Dict[str, Dict[str, Any]] = field(default_factory=dict)

    @classmethod
    def bundled(cls) -> "InMemoryCatalog":
        store = cls()
        for template in load_templates_json():
            store.upsert(template)
        return store

    def upsert(self, template: CardTemplate) -> None:
        self.documents[template.key] = template.to_document()

    def fetch_by_type(self, card_type: CardType) -> List[CardTemplate]:
        return [
            template_from_document(document, template_id=key)
            for key, document in self.documents.items()
            if document.get("card_type") == CardType(card_type).value
        ]


class CatalogClient:
    """Thin wrapper around the card catalog store.

    Without a DSN the client serves the in-memory store (the bundled card list
    by default). With a DSN, templates live in the ``card_templates`` table as
    JSONB documents keyed by title.
    """

    def __init__(self, dsn: Optional[str] = None, memory_store: Optional[InMemoryCatalog] = None) -> None:
        self._dsn = dsn
        self._memory = memory_store
        self._conn: Optional[psycopg.Connection] = None
        if dsn:
            try:
                self._conn = psycopg.connect(dsn)  # pragma: no cover - integration path
            except psycopg.Error as exc:  # pragma: no cover - integration path
                raise CatalogError(f"Failed to connect to card catalog: {exc}") from exc
        elif self._memory is None:
            self._memory = InMemoryCatalog.bundled()

    def close(self) -> None:
        if self._conn is not None:  # pragma: no cover - integration path
            self._conn.close()
            self._conn = None

    # ------------------------------------------------------------------
    # schema helpers
    # ------------------------------------------------------------------
    def ensure_schema(self) -> None:
        if self._conn is None:
            return

        with self._conn.cursor() as cur:  # pragma: no cover - integration path
            cur.execute(
                """
                CREATE TABLE IF NOT EXISTS card_templates (
                    title TEXT PRIMARY KEY,
                    card_type TEXT NOT NULL,
                    document JSONB NOT NULL,
                    updated_at TIMESTAMPTZ NOT NULL
                )
                """
            )
            self._conn.commit()

    # ------------------------------------------------------------------
    # read helpers
    # ------------------------------------------------------------------
    def fetch_by_type(self, card_type: CardType) -> List[CardTemplate]:
        card_type = CardType(card_type)
        if self._conn is None:
            return self._memory.fetch_by_type(card_type)

        try:  # pragma: no cover - integration path
            with self._conn.cursor() as cur:
                cur.execute(
                    """
                    SELECT title, document
                    FROM card_templates
                    WHERE card_type = %s
                    ORDER BY title ASC
                    """,
                    (card_type.value,),
                )
                rows = cur.fetchall()
        except psycopg.Error as exc:  # pragma: no cover - integration path
            raise CatalogError(f"Failed to fetch {card_type.value} cards: {exc}") from exc
        return [template_from_document(document, template_id=title) for title, document in rows]

    def fetch_all(self) -> List[CardTemplate]:
        templates = self.fetch_by_type(CardType.MONSTER) + self.fetch_by_type(CardType.SPELL)
        if not templates:
            raise CatalogError("Card catalog is empty")
        return templates

    # ------------------------------------------------------------------
    # write helpers
    # ------------------------------------------------------------------
    def upsert_templates(self, templates: Iterable[CardTemplate]) -> int:
        """Insert or replace every template, keyed by title. Returns the count."""

        templates = list(templates)
        if self._conn is None:
            for template in templates:
                self._memory.upsert(template)
            logger.info("Seeded %d cards into the in-memory catalog", len(templates))
            return len(templates)

        with self._conn.cursor() as cur:  # pragma: no cover - integration path
            for template in templates:
                cur.execute(
                    """
                    INSERT INTO card_templates (title, card_type, document, updated_at)
                    VALUES (%s, %s, %s, %s)
                    ON CONFLICT (title) DO UPDATE SET
                        card_type = EXCLUDED.card_type,
                        document = EXCLUDED.document,
                        updated_at = EXCLUDED.updated_at
                    """,
                    (
                        template.key,
                        template.card_type.value,
                        Jsonb(template.to_document()),
                        datetime.now(timezone.utc),
                    ),
                )
            self._conn.commit()
        logger.info("Seeded %d cards into the PostgreSQL catalog", len(templates))
        return len(templates)


__all__ = [
    "CatalogClient",
    "InMemoryCatalog",
    "BUNDLED_CATALOG",
    "load_templates_json",
    "template_from_document",
]
