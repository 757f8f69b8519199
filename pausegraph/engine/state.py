"""
State Management for Workflow Engine.

The shared state is a plain dict of channel name -> value. A StateSchema
declares the channels up front, each with a type and a reducer that decides
how a node's partial update is merged into the running state.
"""

from typing import Any, Dict, Iterable, List, Optional
from dataclasses import dataclass
from enum import Enum
from copy import deepcopy


class Reducer(str, Enum):
    """How a channel combines an update with its current value."""
    OVERWRITE = "overwrite"  # New value replaces the old one
    APPEND = "append"        # New value(s) are added to the sequence


def json_problem(value: Any, path: str) -> Optional[str]:
    """
    Describe the first part of ``value`` that JSON cannot store as-is.

    State and interrupt payloads must survive a round trip through any
    checkpoint store unchanged, so only dicts with string keys, lists, str,
    int, float, bool and None are accepted. Tuples, sets, datetimes and
    arbitrary objects are not.
    """
    if value is None or isinstance(value, (str, int, float, bool)):
        return None
    if isinstance(value, list):
        for i, item in enumerate(value):
            problem = json_problem(item, f"{path}[{i}]")
            if problem:
                return problem
        return None
    if isinstance(value, dict):
        for key, item in value.items():
            if not isinstance(key, str):
                return f"'{path}' has a non-string key {key!r}"
            problem = json_problem(item, f"{path}.{key}")
            if problem:
                return problem
        return None
    return f"'{path}' holds a {type(value).__name__}, which is not JSON data"


@dataclass
class Channel:
    """
    A named slot in the workflow state.

    Attributes:
        name: Channel name (the key in the state dict)
        value_type: Expected value type, or item type for append channels.
            ``None`` disables the check.
        reducer: Merge strategy for updates to this channel
        default: Initial value when the input does not provide one
    """

    name: str
    value_type: Optional[type] = None
    reducer: Reducer = Reducer.OVERWRITE
    default: Any = None

    def __post_init__(self):
        if not self.name:
            raise ValueError("Channel name cannot be empty")

    def initial_value(self) -> Any:
        if self.reducer == Reducer.APPEND:
            return list(self.default or [])
        return deepcopy(self.default)

    def reduce(self, current: Any, value: Any) -> Any:
        if self.reducer == Reducer.APPEND:
            existing = list(current) if current is not None else []
            if isinstance(value, (list, tuple)):
                return existing + list(value)
            return existing + [value]
        return value

    def check(self, value: Any) -> Optional[str]:
        """Return a problem description if ``value`` has the wrong type."""
        if self.reducer == Reducer.APPEND:
            items = value if isinstance(value, (list, tuple)) else [value]
            for i, item in enumerate(items):
                problem = json_problem(item, f"{self.name}[{i}]")
                if problem:
                    return problem
        else:
            problem = json_problem(value, self.name)
            if problem:
                return problem

        if self.value_type is None or value is None:
            return None
        if self.reducer == Reducer.APPEND:
            for item in items:
                if not isinstance(item, self.value_type):
                    return (
                        f"channel '{self.name}' expects items of type "
                        f"{self.value_type.__name__}, got {type(item).__name__}"
                    )
            return None
        if not isinstance(value, self.value_type):
            return (
                f"channel '{self.name}' expects {self.value_type.__name__}, "
                f"got {type(value).__name__}"
            )
        return None


_DEFAULT_CHANNEL = Channel(name="__default__")


class StateSchema:
    """
    Declared channels of a workflow state.

    Channels that are not declared are still accepted and behave as
    untyped overwrite channels.

    Usage:
        schema = StateSchema([
            Channel("query", str),
            Channel("history", str, reducer=Reducer.APPEND),
        ])
        state = schema.initial_state({"query": "tokyo"})
        state = schema.merge(state, {"history": "asked"})
    """

    def __init__(self, channels: Optional[Iterable[Channel]] = None):
        self.channels: Dict[str, Channel] = {}
        for channel in channels or []:
            if channel.name in self.channels:
                raise ValueError(f"Channel '{channel.name}' declared twice")
            self.channels[channel.name] = channel

    def channel(self, name: str) -> Channel:
        return self.channels.get(name, _DEFAULT_CHANNEL)

    def initial_state(self, initial_input: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """Channel defaults with ``initial_input`` merged on top."""
        state = {name: ch.initial_value() for name, ch in self.channels.items()}
        return self.merge(state, initial_input or {})

    def merge(self, old_state: Dict[str, Any], update: Dict[str, Any]) -> Dict[str, Any]:
        """
        Merge a partial update into the state and return the new state.

        Pure and total: ``old_state`` is not modified and no update is
        rejected. Channels absent from ``update`` keep their value.
        """
        new_state = dict(old_state)
        for key, value in update.items():
            new_state[key] = self.channel(key).reduce(old_state.get(key), value)
        return new_state

    def check_update(self, update: Dict[str, Any]) -> List[str]:
        """List type and JSON problems in a partial update (empty if it is fine)."""
        problems = []
        for key, value in update.items():
            problem = self.channel(key).check(value)
            if problem:
                problems.append(problem)
        return problems

    def to_dict(self) -> Dict[str, Any]:
        return {
            name: {
                "type": ch.value_type.__name__ if ch.value_type else None,
                "reducer": ch.reducer.value,
            }
            for name, ch in self.channels.items()
        }

    def __repr__(self) -> str:
        return f"StateSchema(channels={list(self.channels.keys())})"
