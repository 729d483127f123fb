#!/usr/bin/env python3
"""Murmur command line.

    murmur run --user user-42                      # search the library for candidates
    murmur run --user user-42 --item a1 --item b2  # digest exactly these items
    murmur run --user user-42 --voice en-US-AvaNeural --rate 1.2
    murmur definition                              # fetch PROMPT_FILE_URL and summarize it
    murmur schedule daily                          # cron pattern for the scheduler

Settings come from the environment; see config.py.
"""

import argparse
import asyncio
import json
import logging
import sys

from config import CREATE_DIGEST_JOB, CRON_PATTERNS, Config, get_cron_pattern
from observability.logging import setup_logging

logger = logging.getLogger(__name__)

EXIT_INTERRUPTED = 130


def cmd_run(args: argparse.Namespace, config: Config) -> int:
    """Run the pipeline once and print the response; exit 1 if the digest failed."""
    from models.user import CreateDigestRequest
    from pipeline import create_digest

    request = CreateDigestRequest(
        id=args.id,
        user_id=args.user,
        voices=args.voice,
        language=args.language,
        rate=args.rate,
        library_item_ids=args.item,
    )
    try:
        response = asyncio.run(create_digest(config, request))
    except KeyboardInterrupt:
        logger.info("Interrupted, digest abandoned | user=%s", args.user)
        return EXIT_INTERRUPTED

    print(json.dumps(response, indent=2))
    return 0 if response["jobState"] == "SUCCEEDED" else 1


def cmd_definition(args: argparse.Namespace, config: Config) -> int:
    from definition import load_definition

    definition = asyncio.run(load_definition(config))
    print(json.dumps({
        "name": definition.name,
        "model": definition.model,
        "preferenceSelectors": [s.model_dump(by_alias=True) for s in definition.preference_selectors],
        "candidateSelectors": [s.model_dump(by_alias=True) for s in definition.candidate_selectors],
        "rankingPrompts": bool(definition.zero_shot.rank_prompt),
    }, indent=2))
    return 0


def cmd_schedule(args: argparse.Namespace, config: Config) -> int:
    cron = get_cron_pattern(args.schedule)
    print(json.dumps({"job": CREATE_DIGEST_JOB, "schedule": args.schedule, "cron": cron}))
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="murmur",
        description="Murmur: audio digests of a user's saved reading",
        epilog=__doc__,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="log DEBUG to the console")
    commands = parser.add_subparsers(dest="command")

    run = commands.add_parser("run", help="create one digest")
    run.add_argument("--user", required=True, help="recipient user id")
    run.add_argument("--id", help="digest id, generated when omitted")
    run.add_argument("--item", action="append", metavar="ITEM_ID",
                     help="library item to include; repeat for more, skips candidate search")
    run.add_argument("--voice", action="append",
                     help="speech voice; the second one reads quotes")
    run.add_argument("--language", help="speech language tag")
    run.add_argument("--rate", help="speech rate")
    run.set_defaults(handler=cmd_run, needs_definition=True)

    definition = commands.add_parser("definition", help="fetch and summarize the digest definition")
    definition.set_defaults(handler=cmd_definition, needs_definition=True)

    schedule = commands.add_parser("schedule", help="print the cron pattern of a schedule")
    schedule.add_argument("schedule", choices=sorted(CRON_PATTERNS))
    schedule.set_defaults(handler=cmd_schedule, needs_definition=False)

    return parser


def main() -> int:
    parser = build_parser()
    args = parser.parse_args()
    if args.command is None:
        parser.print_help()
        return 0

    config = Config.load()
    setup_logging(config, verbose=args.verbose)

    if args.needs_definition and (error := config.validate()):
        print(f"Configuration error: {error}", file=sys.stderr)
        return 1

    try:
        return args.handler(args, config)
    except Exception as e:
        logger.error("Command failed | cmd=%s error=%s", args.command, e, exc_info=True)
        print(f"Error: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
