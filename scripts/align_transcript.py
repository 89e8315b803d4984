#!/usr/bin/env python3
"""Align quotes (or a chat answer) against a transcript for manual inspection.

Usage:
    # Align quotes: quotes.json holds [{"timestamp": "[01:10-01:40]", "text": "..."}]
    python scripts/align_transcript.py --transcript transcript.json --quotes quotes.json

    # Extract citations from a chat answer
    python scripts/align_transcript.py --transcript transcript.json --answer answer.txt

    # Tight citation spans, timestamp-only fallback for unmatched quotes
    python scripts/align_transcript.py --transcript t.json --quotes q.json --no-context --fallback

The transcript file is a JSON list of {"text", "start", "duration"} objects.
"""

import argparse
import json
import logging
import sys
from pathlib import Path

from reelanchor.services import align_quotes, build_transcript_index, extract_citations
from reelanchor.services.timestamps import format_timestamp_range

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


def load_json(path: Path):
    with open(path, encoding="utf-8") as f:
        return json.load(f)


def print_spans(spans) -> None:
    print("=" * 70)
    print(f"ALIGNED SPANS ({len(spans)})")
    print("=" * 70)
    for span in spans:
        strategy = span.match_strategy.value if span.match_strategy else "merged"
        print(f"{format_timestamp_range(span.start, span.end)}  "
              f"confidence={span.confidence:.2f}  strategy={strategy}")
        print(f"  {span.text[:160]}")
        for quote in span.source_quotes:
            print(f"  <- {quote[:100]}")
        print()


def print_citations(result) -> None:
    print("=" * 70)
    print("REWRITTEN ANSWER")
    print("=" * 70)
    print(result.content)
    print()
    for citation in result.citations:
        print(f"[{citation.number}] {citation.timestamp:.0f}s  {citation.text[:100]}")


def main() -> int:
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[0])
    parser.add_argument("--transcript", type=Path, required=True, help="Transcript JSON file")
    group = parser.add_mutually_exclusive_group(required=True)
    group.add_argument("--quotes", type=Path, help="Quotes JSON file")
    group.add_argument("--answer", type=Path, help="Chat answer text file")
    parser.add_argument("--no-context", action="store_true", help="Do not widen spans")
    parser.add_argument("--fallback", action="store_true", help="Timestamp-only fallback")
    parser.add_argument("--json", action="store_true", help="Print raw JSON output")
    args = parser.parse_args()

    if not args.transcript.exists():
        logger.error(f"Transcript not found: {args.transcript}")
        return 1

    index = build_transcript_index(load_json(args.transcript))

    if args.quotes:
        spans = align_quotes(
            index,
            load_json(args.quotes),
            with_context=not args.no_context,
            fallback_to_timestamp=args.fallback,
        )
        if args.json:
            print(json.dumps([s.model_dump(mode="json") for s in spans], indent=2))
        else:
            print_spans(spans)
    else:
        result = extract_citations(args.answer.read_text(encoding="utf-8"), index)
        if args.json:
            print(json.dumps(result.model_dump(mode="json"), indent=2))
        else:
            print_citations(result)
    return 0


if __name__ == "__main__":
    sys.exit(main())
