from __future__ import annotations
import argparse
import asyncio
import glob
import logging
import random
from typing import List, Optional

from chat import DEFAULT_ORDER, MAX_PHRASE_LENGTH
from phrasebook import Phrasebook

logger = logging.getLogger(__name__)


def read_corpus(paths: List[str]) -> List[str]:
    lines = []
    for p in paths:
        try:
            with open(p, "r", encoding="utf-8", errors="ignore") as f:
                lines.extend(line for line in f.read().splitlines() if line.strip())
        except OSError as e:
            logger.warning("Failed to read %s: %s", p, e)
    return lines


async def build(files: List[str], out: str, order: int, append: bool,
                rng: Optional[random.Random] = None) -> Phrasebook:
    pb = Phrasebook(order=order, storage_path=out, rng=rng)
    if append:
        await pb.load()
    for line in read_corpus(files):
        pb.learn(line)
    await pb.dump()
    return pb


def main(argv: Optional[List[str]] = None):
    ap = argparse.ArgumentParser(description="Build and save a phrasebook from corpus files.")
    ap.add_argument("--corpus", nargs="+", required=True, help="Paths/globs to plain-text corpus files, one utterance per line")
    ap.add_argument("--order", type=int, default=DEFAULT_ORDER, help="Tokens per key")
    ap.add_argument("--out", required=True, help="Output phrasebook path (e.g., data/phrasebook.json or .json.gz)")
    ap.add_argument("--append", action="store_true", help="Merge into an existing phrasebook at --out")
    ap.add_argument("--count", type=int, default=5, help="Sample phrases to print")
    ap.add_argument("--limit", type=int, default=MAX_PHRASE_LENGTH, help="Max generation iterations per phrase")
    ap.add_argument("--seed", type=int, default=None, help="RNG seed for sample phrases")
    args = ap.parse_args(argv)

    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")

    # Resolve corpus globs
    files = []
    for pattern in args.corpus:
        files.extend(glob.glob(pattern))
    if not files:
        raise SystemExit("No corpus files found. Provide --corpus paths/globs to .txt files.")

    pb = asyncio.run(build(files, args.out, args.order, args.append, random.Random(args.seed)))
    print(f"Saved phrasebook: {args.out} ({len(pb)} keys)")
    for _ in range(args.count):
        print(pb.generate(args.limit))


if __name__ == "__main__":
    main()
