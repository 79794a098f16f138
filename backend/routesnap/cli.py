#!/usr/bin/env python3
"""
RouteSnap CLI — parse a route-sheet text file and print the stops as JSON.

    routesnap sheet.txt --strict-status
    cat ocr.txt | routesnap - --has-header --debug
"""
import argparse
import json
import logging
import sys
from pathlib import Path
from typing import List, Optional

from routesnap.config import settings
from routesnap.parser import ParseOptions, parse_route_sheet


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="routesnap",
        description="Parse route-sheet text (tab, CSV or column-aligned) into delivery stops.",
    )
    parser.add_argument(
        "source",
        help="Route-sheet text file, or '-' to read stdin",
    )
    parser.add_argument(
        "--strict-status",
        action=argparse.BooleanOptionalAction,
        default=settings.parser_strict_status,
        help="Fold statuses onto active/suspended/canceled/unknown; PARSER_STRICT_STATUS sets the default",
    )
    parser.add_argument(
        "--has-header",
        action="store_true",
        help="First line is a header naming the address/status/notes columns",
    )
    parser.add_argument(
        "--debug",
        action=argparse.BooleanOptionalAction,
        default=settings.parser_debug,
        help="Log skipped lines and unknown statuses to stderr; PARSER_DEBUG sets the default",
    )
    parser.add_argument(
        "--keep-comments",
        action=argparse.BooleanOptionalAction,
        default=not settings.parser_skip_comments,
        help="Do not drop lines starting with '#' or '//'; PARSER_SKIP_COMMENTS=false sets the default",
    )
    parser.add_argument(
        "--keep-notes-case",
        action="store_true",
        help="Keep the original casing of the notes column",
    )
    parser.add_argument(
        "--indent",
        type=int,
        default=2,
        help="JSON indent (default: 2)",
    )
    return parser


def read_source(source: str) -> str:
    if source == "-":
        return sys.stdin.read()
    with open(source, "r", encoding="utf-8", errors="replace") as f:
        return f.read()


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    if args.source != "-" and not Path(args.source).exists():
        print(f"Error: route sheet not found: {args.source}", file=sys.stderr)
        return 1

    if args.debug:
        logging.basicConfig(
            level=logging.INFO,
            format="%(levelname)s %(name)s: %(message)s",
            stream=sys.stderr,
        )

    options = ParseOptions(
        strict_status=args.strict_status,
        has_header=args.has_header,
        debug=args.debug,
        skip_comments=not args.keep_comments,
        fold_notes_case=not args.keep_notes_case,
    )
    stops = parse_route_sheet(read_source(args.source), options)

    print(json.dumps([stop.to_dict() for stop in stops], indent=args.indent))
    return 0


if __name__ == "__main__":
    sys.exit(main())
