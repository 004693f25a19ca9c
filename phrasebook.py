from __future__ import annotations
import asyncio
import gzip
import json
import logging
import os
import random
import tempfile
from typing import Dict, FrozenSet, Iterable, Iterator, List, Optional, Set, Tuple, Union

logger = logging.getLogger(__name__)

# End of an utterance. Whitespace splitting never yields an empty token.
END = ""

FALLBACK_PHRASE = "I don't have anything to say..."

Key = Tuple[str, ...]


class PhrasebookFormatError(ValueError):
    """Raised when persisted phrasebook content is not an object of string arrays."""


def tokenize(text: str) -> List[str]:
    # Tokens are exact whitespace-delimited substrings, terminated by END
    tokens = text.split()
    tokens.append(END)
    return tokens


def encode_key(key: Key) -> str:
    return " ".join(key)


def decode_key(key_str: str) -> Key:
    return tuple(key_str.split(" "))


class Phrasebook:
    """
    Quasi-Markov chain over whitespace tokens with unweighted transitions.

    transitions: Dict[key_tuple, Set[next_token]]
    Only which tokens may follow a key is recorded, never how often, so
    generation picks uniformly among the distinct successors.
    """
    def __init__(self, order: int = 3, storage_path: Optional[str] = None,
                 rng: Optional[random.Random] = None):
        if order < 1:
            raise ValueError("order must be >= 1")
        self.order = order
        self.storage_path = storage_path
        self.rng = rng or random.Random()
        self.transitions: Dict[Key, Set[str]] = {}
        # Insertion-ordered mirror of transitions' keys for O(1) random picks
        self._keys: List[Key] = []
        self._write_lock = asyncio.Lock()

    def __len__(self) -> int:
        return len(self.transitions)

    def __contains__(self, key: object) -> bool:
        if isinstance(key, str):
            key = decode_key(key)
        return key in self.transitions

    def keys(self) -> Iterator[Key]:
        return iter(self._keys)

    def successors(self, key: Union[Key, str]) -> FrozenSet[str]:
        if isinstance(key, str):
            key = decode_key(key)
        return frozenset(self.transitions.get(key, ()))

    def _add(self, key: Key, successors: Iterable[str]):
        entry = self.transitions.get(key)
        if entry is None:
            entry = self.transitions[key] = set()
            self._keys.append(key)
        entry.update(successors)

    def learn(self, text: str):
        tokens = tokenize(text)
        if len(tokens) <= self.order:
            return
        for i in range(len(tokens) - self.order):
            key = tuple(tokens[i : i + self.order])
            self._add(key, (tokens[i + self.order],))

    def _choose(self, successors: Set[str]) -> str:
        # Sorted so a seeded rng walks the same way regardless of hash seed
        return self.rng.choice(sorted(successors))

    def walk(self, start: Union[Key, str], limit: int) -> List[str]:
        """
        Random walk from ``start`` for at most ``limit`` iterations after the
        first successor. Stops early once END is chosen; END is kept in the
        returned tokens. A key with no entry ends the walk as END would.
        """
        if limit < 0:
            raise ValueError("limit must be >= 0")
        if isinstance(start, str):
            start = decode_key(start)
        out: List[str] = list(start)
        successors = self.transitions.get(start)
        if not successors:
            logger.debug("Start key %r has no successors", encode_key(start))
            return out

        nxt = self._choose(successors)
        out.append(nxt)
        key = start[1:] + (nxt,)

        iterations = 0
        while nxt != END and iterations < limit:
            successors = self.transitions.get(key)
            if not successors:
                logger.debug("No entry for key %r after %d iterations, stopping",
                             encode_key(key), iterations)
                break
            nxt = self._choose(successors)
            out.append(nxt)
            key = key[1:] + (nxt,)
            iterations += 1
        return out

    def generate(self, limit: int) -> str:
        if limit < 0:
            raise ValueError("limit must be >= 0")
        if not self._keys:
            return FALLBACK_PHRASE
        start = self._keys[self.rng.randrange(len(self._keys))]
        tokens = self.walk(start, limit)
        if tokens and tokens[-1] == END:
            tokens.pop()
        return " ".join(tokens)

    def to_dict(self) -> Dict[str, List[str]]:
        return {
            encode_key(key): sorted(successors) for key, successors in self.transitions.items()
        }

    def update(self, data: object):
        """Merge entries parsed from the persisted format into the table."""
        if not isinstance(data, dict):
            raise PhrasebookFormatError(
                f"expected a JSON object at top level, got {type(data).__name__}")
        for key_str, successors in data.items():
            if not isinstance(successors, list) or not all(isinstance(s, str) for s in successors):
                raise PhrasebookFormatError(
                    f"entry {key_str!r} must map to an array of strings")
        # Key width is not checked against self.order
        for key_str, successors in data.items():
            self._add(decode_key(key_str), successors)

    @classmethod
    def from_dict(cls, data: dict, order: int = 3, **kwargs) -> "Phrasebook":
        pb = cls(order=order, **kwargs)
        pb.update(data)
        return pb

    async def dump(self):
        """Persist the whole table to storage_path; at most one write runs at a time."""
        path = self.storage_path
        if path is None:
            logger.debug("No storage path configured, not dumping")
            return
        async with self._write_lock:
            # Snapshot on the event loop so learn() can't mutate mid-write
            data = self.to_dict()
            try:
                await asyncio.to_thread(_write, path, data)
            except OSError:
                logger.exception("Failed to write phrasebook to %s (%d entries)", path, len(data))
                raise
        logger.info("Saved phrasebook to %s (%d entries)", path, len(data))

    async def load(self):
        """Restore the table from storage_path. A missing file leaves it empty."""
        path = self.storage_path
        if path is None:
            logger.debug("No storage path configured, not loading")
            return
        if not os.path.exists(path):
            logger.info("No phrasebook at %s, starting empty", path)
            return
        try:
            data = await asyncio.to_thread(_read, path)
            self.update(data)
        except (OSError, EOFError, ValueError):
            logger.exception("Failed to load phrasebook from %s", path)
            raise
        logger.info("Loaded phrasebook from %s (%d entries)", path, len(self))


def _write(path: str, data: Dict[str, List[str]]):
    """
    Write JSON, gzipped when the path ends with .gz. The previous file stays
    in place until the new content is fully written.
    """
    directory = os.path.dirname(path) or "."
    os.makedirs(directory, exist_ok=True)
    fd, tmp_path = tempfile.mkstemp(dir=directory, prefix=".phrasebook-", suffix=".tmp")
    try:
        if path.endswith(".gz"):
            with os.fdopen(fd, "wb") as raw, gzip.open(raw, "wt", encoding="utf-8") as f:
                json.dump(data, f, ensure_ascii=False)
        else:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(data, f, ensure_ascii=False)
        os.replace(tmp_path, path)
    except BaseException:
        if os.path.exists(tmp_path):
            os.remove(tmp_path)
        raise


def _read(path: str) -> object:
    if path.endswith(".gz"):
        with gzip.open(path, "rt", encoding="utf-8") as f:
            return json.load(f)
    with open(path, "r", encoding="utf-8") as f:
        return json.load(f)
