"""Command line entry point: headless matches and catalog maintenance."""
from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from dataclasses import replace
from pathlib import Path
from typing import List, Optional

from .catalog import BUNDLED_CATALOG, CatalogClient, load_templates_json
from .config import Settings
from .errors import CatalogError
from .generation import (
    LangChainArtGenerator,
    LangChainDescriptionGenerator,
    build_chat_model,
    pregenerate_templates,
)
from .models import GameMode
from .simulation import load_templates, play_match

logger = logging.getLogger(__name__)


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="arcane-clash", description="Arcane Clash card game engine")
    parser.add_argument("-v", "--verbose", action="store_true", help="enable debug logging")
    commands = parser.add_subparsers(dest="command", required=True)

    simulate = commands.add_parser("simulate", help="play headless matches between greedy agents")
    simulate.add_argument("--mode", choices=[m.value for m in GameMode], default=None)
    simulate.add_argument("--games", type=int, default=1)
    simulate.add_argument("--seed", default=None, help="hex seed for the first game")
    simulate.add_argument("--roll-stats", action="store_true", help="roll monster stats procedurally")
    simulate.add_argument("--show-log", action="store_true", help="print every battle log line")

    seed_catalog = commands.add_parser("seed-catalog", help="upsert card templates into the catalog store")
    seed_catalog.add_argument("--file", type=Path, default=BUNDLED_CATALOG)
    seed_catalog.add_argument("--dsn", default=None, help="PostgreSQL DSN (defaults to the configured catalog)")

    pregenerate = commands.add_parser("pregenerate", help="generate missing art and descriptions offline")
    pregenerate.add_argument("--file", type=Path, default=BUNDLED_CATALOG)
    pregenerate.add_argument("--output", type=Path, required=True)
    pregenerate.add_argument("--delay", type=float, default=5.0, help="seconds between cards")
    pregenerate.add_argument("--no-art", action="store_true", help="only generate descriptions")
    return parser


def _simulate(args: argparse.Namespace, settings: Settings) -> int:
    if args.mode:
        settings = replace(settings, mode=GameMode(args.mode))
    if args.roll_stats:
        settings = replace(settings, roll_stats=True)
    templates = load_templates(settings)

    for number in range(args.games):
        seed = args.seed if number == 0 else None
        summary = play_match(templates, settings, seed=seed)
        if args.show_log:
            for line in summary.log:
                print(line)
        result = "draw" if summary.is_draw else f"winner {summary.winner_id}"
        if not summary.finished:
            result = "unfinished"
        hp = ", ".join(f"{player_id}={hp}" for player_id, hp in summary.final_hp.items())
        print(f"game {summary.game_id}: {result} after {summary.rounds} rounds ({hp})")
    return 0


def _seed_catalog(args: argparse.Namespace, settings: Settings) -> int:
    templates = load_templates_json(args.file)
    client = CatalogClient(args.dsn or settings.catalog_dsn)
    try:
        client.ensure_schema()
        count = client.upsert_templates(templates)
    finally:
        client.close()
    print(f"Seeded {count} card templates")
    return 0


def _pregenerate(args: argparse.Namespace, settings: Settings) -> int:
    templates = load_templates_json(args.file)
    llm = build_chat_model(settings)
    art_generator = None if args.no_art else LangChainArtGenerator(llm)
    completed = asyncio.run(
        pregenerate_templates(
            templates,
            art_generator,
            LangChainDescriptionGenerator(llm),
            timeout=settings.generation_timeout,
            delay=args.delay,
        )
    )
    documents = [template.to_document() for template in completed]
    args.output.write_text(json.dumps(documents, indent=2, ensure_ascii=False) + "\n", encoding="utf-8")
    print(f"Wrote {len(documents)} cards to {args.output}")
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    args = _build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    settings = Settings.from_env()
    handlers = {"simulate": _simulate, "seed-catalog": _seed_catalog, "pregenerate": _pregenerate}
    try:
        return handlers[args.command](args, settings)
    except CatalogError as exc:
        logger.error("Cannot start: %s", exc)
        return 1


if __name__ == "__main__":  # pragma: no cover
    sys.exit(main())
