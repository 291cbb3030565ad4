"""
Kitchen Assistant - Command Line Entry Point

Usage:
    python -m kitchen_assistant.main "soy allergy, recommend a tofu-free stir-fry"
    python -m kitchen_assistant.main "quick kimchi fried rice" --allergy egg --stream
    python -m kitchen_assistant.main "give me more tips" --session my-session
"""

import argparse
import asyncio
import json
import sys
from typing import List, Optional

from loguru import logger

from kitchen_assistant.config import settings
from kitchen_assistant.core.errors import ConfigurationError
from kitchen_assistant.core.logging import setup_logging


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Allergy-aware cooking assistant")
    parser.add_argument("query", help="What you'd like to cook or ask")
    parser.add_argument(
        "--allergy",
        action="append",
        default=[],
        help="Allergy to exclude (repeatable, e.g. --allergy soy --allergy peanut)",
    )
    parser.add_argument("--session", default=None, help="Session id for follow-up questions")
    parser.add_argument("--user", default=None, help="Caller id (logging only)")
    parser.add_argument("--stream", action="store_true", help="Print progress events as they happen")
    parser.add_argument("--show-metadata", action="store_true", help="Print response metadata as JSON")
    return parser


async def _run_once(args: argparse.Namespace) -> int:
    from kitchen_assistant.rag.graphs.router import run

    result = await run(args.query, session_id=args.session, allergies=args.allergy, user_id=args.user)
    print(result["response"])
    if args.show_metadata:
        print(json.dumps(result["metadata"], ensure_ascii=False, indent=2, default=str))
    return 1 if result["metadata"].get("error") else 0


async def _stream_once(args: argparse.Namespace) -> int:
    from kitchen_assistant.rag.graphs.streaming import stream

    exit_code = 0
    async for chunk in stream(args.query, session_id=args.session, allergies=args.allergy, user_id=args.user):
        if chunk.type == "status":
            print(f"[{chunk.payload['node']}] {chunk.payload['message']} ({chunk.payload['elapsed_ms']}ms)", file=sys.stderr)
        elif chunk.type == "content":
            print(chunk.payload["text"], end="\n\n")
        elif chunk.type == "error":
            print(f"Error: {chunk.payload['message']}", file=sys.stderr)
            exit_code = 1
        elif chunk.type == "complete" and args.show_metadata:
            print(json.dumps(chunk.payload["metadata"], ensure_ascii=False, indent=2, default=str))
    return exit_code


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    setup_logging(log_to_file=settings.ENV == "production")

    try:
        settings.validate_required_endpoints()
    except ConfigurationError as e:
        logger.error(f"Invalid configuration: {e}")
        print(f"Configuration error: {e}", file=sys.stderr)
        return 2

    runner = _stream_once if args.stream else _run_once
    return asyncio.run(runner(args))


if __name__ == "__main__":
    sys.exit(main())
