#!/usr/bin/env python3
"""
NLU Training Runner

Mounts a bot from its definitions folder, trains the requested languages
and optionally runs a prediction with the result.

Usage:
    python run_training.py my-bot
    python run_training.py my-bot --language fr
    python run_training.py my-bot --predict "hello there" --debug
"""

import asyncio
import argparse
import json
import logging
import sys
import os

# Add the project root to path
sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

from nlu.config import settings
from nlu.core import BotDefinition
from nlu.dependencies import get_bot_service
from nlu.errors import NLUError

logger = logging.getLogger("run_training")


def setup_logging(debug: bool = False) -> None:
    """Configure logging."""
    level = logging.DEBUG if debug else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=[
            logging.StreamHandler(sys.stdout)
        ]
    )


def read_bot_definition(bot_id: str) -> BotDefinition:
    """Read <definitions_dir>/<bot_id>/bot.json."""
    path = os.path.join(settings.definitions_dir, bot_id, "bot.json")
    with open(path, encoding="utf-8") as f:
        config = json.load(f)

    return BotDefinition(
        bot_id=bot_id,
        default_language=config["default_language"],
        languages=tuple(config["languages"])
    )


async def main(args) -> int:
    bot = read_bot_definition(args.bot_id)
    service = get_bot_service()
    orchestrator = await service.mount_bot(bot)

    languages = [args.language] if args.language else list(bot.languages)
    failed = 0

    try:
        for language in languages:
            def on_progress(progress: float, language=language):
                logger.info(f"[{language}] {progress:.0%}")

            try:
                model = await orchestrator.train(language, on_progress)
                logger.info(f"[{language}] trained {model.id}")
            except NLUError as e:
                logger.error(f"[{language}] training failed: {e}")
                failed += 1

        if args.predict:
            result = await orchestrator.predict(args.predict, args.language)
            top = result.top_intent
            print(json.dumps({
                "language": result.language_code,
                "intent": top.name if top else None,
                "confidence": top.confidence if top else 0.0,
                "entities": [
                    {"name": e.name, "value": e.value, "source": e.source}
                    for e in result.entities
                ],
            }, indent=2))
    finally:
        await service.shutdown()

    return 1 if failed else 0


if __name__ == "__main__":
    parser = argparse.ArgumentParser(
        description="Train the NLU models of a bot",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
    python run_training.py my-bot
    python run_training.py my-bot --language fr --predict "bonjour"

Environment variables (set in .env):
    NLU_DEFINITIONS_DIR - Folder holding one sub folder per bot
    NLU_MODELS_DIR      - Where trained models are stored
    NLU_STORAGE_BACKEND - filesystem (default) or supabase
        """
    )

    parser.add_argument(
        "bot_id",
        type=str,
        help="Bot folder name under the definitions directory"
    )
    parser.add_argument(
        "--language",
        type=str,
        default=None,
        help="Train only this language (default: all bot languages)"
    )
    parser.add_argument(
        "--predict",
        type=str,
        default=None,
        help="Text to understand once training is done"
    )
    parser.add_argument(
        "--debug",
        action="store_true",
        help="Enable debug logging"
    )

    args = parser.parse_args()

    setup_logging(debug=args.debug)
    sys.exit(asyncio.run(main(args)))
