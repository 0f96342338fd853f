#!/usr/bin/env python3
"""
Query the Handbook Chat knowledge base from the command line.

Usage
-----
Show the passages a chat message would inject as AI context:
    python scripts/search_handbook.py "補考 規定"

Also show the offline answer served when the AI is unavailable:
    python scripts/search_handbook.py "補考規定" --fallback

List sections, or print one (partial names match):
    python scripts/search_handbook.py --sections
    python scripts/search_handbook.py --section 評估

Useful when editing backend/handbook.py: search terms are split on spaces and
punctuation only, so check that the questions students ask still reach the
passages you expect.
"""

import argparse
import os
import sys

# Make sure project root is on the path so we can import backend/
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from backend.handbook import HandbookProcessor, extract_keywords
from backend.utils import generate_fallback_response


def show_search(processor: HandbookProcessor, query: str, limit: int) -> None:
    print(f"Terms: {extract_keywords(query)}")
    results = processor.search_content(query, limit)
    if not results:
        print("No passages scored above the relevance threshold.")
        return
    for rank, result in enumerate(results, 1):
        print(f"{rank:>2}. {result.score:.3f}  [{result.section}] {result.content}")


def show_sections(processor: HandbookProcessor) -> None:
    for section in processor.all_sections():
        print(f"{section} ({len(processor.content[section])} passages)")


def show_section(processor: HandbookProcessor, name: str) -> int:
    section = processor.find_section_name(name)
    if section is None:
        print(f'Section "{name}" not found.', file=sys.stderr)
        return 1
    print(section)
    for line in processor.section_content(section):
        print(f"  - {line}")
    return 0


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(
        description="Search the Handbook Chat knowledge base.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    parser.add_argument("query", nargs="?", help="Question or search terms.")
    parser.add_argument("-k", "--limit", type=int, default=5, help="Maximum passages to show (default 5).")
    parser.add_argument("--fallback", action="store_true", help="Also print the offline fallback answer.")
    parser.add_argument("--sections", action="store_true", help="List handbook sections.")
    parser.add_argument("--section", metavar="NAME", help="Print the passages of one section.")
    args = parser.parse_args(argv)

    processor = HandbookProcessor()

    if args.sections:
        show_sections(processor)
        return 0
    if args.section:
        return show_section(processor, args.section)
    if not args.query:
        parser.error("a query is required unless --sections or --section is given")

    show_search(processor, args.query, args.limit)
    if args.fallback:
        print("\nFallback answer:\n")
        print(generate_fallback_response(args.query))
    return 0


if __name__ == "__main__":
    sys.exit(main())
