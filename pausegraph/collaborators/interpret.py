"""
Interpretation collaborator.

Workflows depend on the ``Interpreter`` protocol:
``interpret(free_text, candidates) -> ordered list of 0-based indices``.
Its output is untrusted and must go through ``validate_selection`` before
use.

``KeywordInterpreter`` is a rule-based stand-in for a language model: it
understands explicit numbers ("2", "1, 3"), cheapest / most expensive, and
words that match a candidate's attributes ("Japan", "Haneda").
"""

from typing import Any, Dict, List, Optional, Protocol, Sequence
import logging
import re

from pausegraph.collaborators.search import tokenize
from pausegraph.engine.errors import InvalidSelectionError


logger = logging.getLogger(__name__)

_NUMBER_RE = re.compile(r"\b\d+\b")

CHEAPEST_WORDS = {"cheapest", "cheaper", "lowest", "budget"}
PRICIEST_WORDS = {"expensive", "priciest", "premium"}

DEFAULT_ATTRIBUTES = (
    "to_city", "country", "airline", "airport_name", "airport_code", "from_city",
)


class Interpreter(Protocol):
    """Anything that maps free text onto a selection of candidates."""

    def interpret(self, free_text: str, candidates: List[Dict[str, Any]]) -> List[int]:
        ...


def validate_selection(indices: Sequence[Any], count: int) -> List[int]:
    """
    Keep the usable indices of an interpretation, in order.

    Drops non-integers, out-of-range and repeated indices.

    Raises:
        InvalidSelectionError: if no valid index remains
    """
    valid = []
    for index in indices:
        if isinstance(index, bool) or not isinstance(index, int):
            continue
        if 0 <= index < count and index not in valid:
            valid.append(index)
    if not valid:
        raise InvalidSelectionError(list(indices), count)
    return valid


def _price(candidate: Dict[str, Any]) -> Optional[float]:
    price = candidate.get("metadata", {}).get("price")
    try:
        return float(price)
    except (TypeError, ValueError):
        return None


class KeywordInterpreter:
    """
    Rule-based interpretation of a user's choice or refinement.

    Rules, first match wins:
    1. Explicit numbers are 1-based positions in the displayed list
    2. "cheapest"-like words pick the lowest price
    3. "most expensive"-like words pick the highest price
    4. Otherwise every candidate with an attribute word in the text
    """

    def __init__(self, attributes: Sequence[str] = DEFAULT_ATTRIBUTES):
        self.attributes = tuple(attributes)

    def interpret(self, free_text: str, candidates: List[Dict[str, Any]]) -> List[int]:
        numbers = _NUMBER_RE.findall(free_text)
        if numbers:
            return [int(n) - 1 for n in numbers]

        words = set(tokenize(free_text))

        priced = []
        for i, candidate in enumerate(candidates):
            price = _price(candidate)
            if price is not None:
                priced.append((price, i))

        if priced and words & CHEAPEST_WORDS:
            return [min(priced)[1]]
        if priced and words & PRICIEST_WORDS:
            return [max(priced, key=lambda item: (item[0], -item[1]))[1]]

        matches = []
        for i, candidate in enumerate(candidates):
            metadata = candidate.get("metadata", {})
            values = " ".join(
                str(metadata[a]) for a in self.attributes if metadata.get(a) is not None
            )
            if words & set(tokenize(values)):
                matches.append(i)

        logger.debug(f"Interpreted '{free_text}' as {matches}")
        return matches
