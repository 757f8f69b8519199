"""
Retrieval collaborator.

Workflows only depend on the ``SearchClient`` protocol:
``search(query, limit) -> ordered list of candidates``. Each candidate is a
dict with an ``id``, a ``text`` and a ``metadata`` mapping (price, route,
schedule...).

``FlightIndex`` is a small local implementation that ranks records by token
overlap with the query. It stands in for a vector store so the demo
workflows run without external services.
"""

from typing import Any, Dict, Iterable, List, Optional, Protocol
from pathlib import Path
from copy import deepcopy
import json
import logging
import re


logger = logging.getLogger(__name__)

DEFAULT_DATASET = Path(__file__).resolve().parent.parent / "workflows" / "data" / "flights.json"

# Words that carry no meaning for matching
STOPWORDS = {
    "a", "an", "and", "any", "are", "for", "from", "i", "in", "is", "me",
    "of", "on", "or", "please", "show", "the", "to", "want", "with",
    "flight", "flights", "fly", "find",
}

_TOKEN_RE = re.compile(r"[a-z0-9]+")


def tokenize(text: str) -> List[str]:
    """Lowercase word tokens of ``text`` without stopwords."""
    return [t for t in _TOKEN_RE.findall(text.lower()) if t not in STOPWORDS]


class SearchClient(Protocol):
    """Anything that can retrieve candidate records for a query."""

    def search(self, query: str, limit: int) -> List[Dict[str, Any]]:
        ...


def load_dataset(path: Optional[str] = None) -> List[Dict[str, Any]]:
    """
    Load flight records from a JSON file.

    Accepts a list of records shaped ``{"text" | "pageContent", "metadata"}``
    or plain metadata dicts.

    Args:
        path: Path to the JSON file (bundled dataset when None)

    Returns:
        List of candidate dicts with ``id``, ``text`` and ``metadata``
    """
    dataset_path = Path(path) if path else DEFAULT_DATASET
    raw = json.loads(dataset_path.read_text(encoding="utf-8"))

    records = []
    for i, item in enumerate(raw):
        if "metadata" in item:
            metadata = dict(item["metadata"])
            text = item.get("text") or item.get("pageContent") or ""
        else:
            metadata = dict(item)
            text = ""
        if not text:
            text = metadata.get("title", "")
        records.append({
            "id": str(metadata.get("id", i + 1)),
            "text": text,
            "metadata": metadata,
        })

    logger.info(f"Loaded {len(records)} records from {dataset_path}")
    return records


class FlightIndex:
    """
    In-memory keyword index over flight records.

    Usage:
        index = FlightIndex.from_json()
        candidates = index.search("flights to Japan", limit=5)
    """

    def __init__(self, records: Iterable[Dict[str, Any]]):
        self.records = list(records)
        self._tokens = [set(self._record_tokens(r)) for r in self.records]

    @classmethod
    def from_json(cls, path: Optional[str] = None) -> "FlightIndex":
        return cls(load_dataset(path))

    @staticmethod
    def _record_tokens(record: Dict[str, Any]) -> List[str]:
        words = [record.get("text", "")]
        for value in record.get("metadata", {}).values():
            if isinstance(value, str):
                words.append(value)
        return tokenize(" ".join(words))

    def search(self, query: str, limit: int) -> List[Dict[str, Any]]:
        """
        Return up to ``limit`` records sharing at least one token with the query.

        Records are ranked by the number of shared tokens; ties keep dataset
        order.
        """
        terms = set(tokenize(query))
        if not terms or limit < 1:
            return []

        scored = []
        for position, tokens in enumerate(self._tokens):
            score = len(terms & tokens)
            if score:
                scored.append((-score, position))
        scored.sort()

        results = [self.records[position] for _, position in scored[:limit]]
        logger.debug(f"Search '{query}' matched {len(scored)} record(s), returning {len(results)}")
        return [deepcopy(r) for r in results]

    def __len__(self) -> int:
        return len(self.records)
