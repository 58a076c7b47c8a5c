"""query.py - Selector-based rich query engine over JSON document values.

Implements a subset of the CouchDB/Mango selector language, which is what a
ledger state database accepts as a rich query::

    {"selector": {"docType": "answer", "score": {"$gte": 3}}, "limit": 10}

Supported operators: ``$eq $ne $gt $gte $lt $lte $in $nin $exists`` on
fields (dotted paths reach into nested objects) and ``$and``/``$or`` over
sub-selectors. Records whose value is not a JSON object never match.
"""

from __future__ import annotations

import json
from typing import Any, Callable, Iterable, Iterator

from .exceptions import StoreFault
from .logger import get_logger
from .state import KV

logger = get_logger(__name__)

_MISSING = object()


def _compare(op: Callable[[Any, Any], bool]) -> Callable[[Any, Any], bool]:
    def check(actual: Any, expected: Any) -> bool:
        if actual is _MISSING:
            return False
        try:
            return op(actual, expected)
        except TypeError:
            return False

    return check


OPERATORS: dict[str, Callable[[Any, Any], bool]] = {
    "$eq": lambda a, e: a is not _MISSING and a == e,
    "$ne": lambda a, e: a is _MISSING or a != e,
    "$gt": _compare(lambda a, e: a > e),
    "$gte": _compare(lambda a, e: a >= e),
    "$lt": _compare(lambda a, e: a < e),
    "$lte": _compare(lambda a, e: a <= e),
    "$in": lambda a, e: a is not _MISSING and a in e,
    "$nin": lambda a, e: a is _MISSING or a not in e,
    "$exists": lambda a, e: (a is not _MISSING) == bool(e),
}


def _lookup(doc: Any, path: str) -> Any:
    for part in path.split("."):
        if not isinstance(doc, dict) or part not in doc:
            return _MISSING
        doc = doc[part]
    return doc


def _validate(selector: Any) -> None:
    if not isinstance(selector, dict):
        raise StoreFault(f"selector must be a JSON object, got {type(selector).__name__}")
    for field, condition in selector.items():
        if field in ("$and", "$or"):
            if not isinstance(condition, list):
                raise StoreFault(f"{field} expects a list of selectors")
            for sub in condition:
                _validate(sub)
        elif field.startswith("$"):
            raise StoreFault(f"unsupported combination operator {field!r}")
        elif isinstance(condition, dict):
            for op, operand in condition.items():
                if op not in OPERATORS:
                    raise StoreFault(f"unsupported operator {op!r} on field {field!r}")
                if op in ("$in", "$nin") and not isinstance(operand, list):
                    raise StoreFault(f"{op} on field {field!r} expects a list")


def matches(doc: Any, selector: dict) -> bool:
    """True if the decoded document satisfies every clause of ``selector``."""
    for field, condition in selector.items():
        if field == "$and":
            if not all(matches(doc, sub) for sub in condition):
                return False
        elif field == "$or":
            if not any(matches(doc, sub) for sub in condition):
                return False
        else:
            actual = _lookup(doc, field)
            if isinstance(condition, dict):
                if not all(OPERATORS[op](actual, v) for op, v in condition.items()):
                    return False
            elif not OPERATORS["$eq"](actual, condition):
                return False
    return True


class SelectorQueryEngine:
    """Evaluates selector query strings against a sequence of records."""

    def parse(self, query: str) -> tuple[dict, int | None]:
        try:
            spec = json.loads(query)
        except (TypeError, ValueError) as e:
            raise StoreFault(f"invalid query string: {e}") from e
        if not isinstance(spec, dict) or "selector" not in spec:
            raise StoreFault("query must be a JSON object with a 'selector' field")
        selector = spec["selector"]
        _validate(selector)
        limit = spec.get("limit")
        if limit is not None and (not isinstance(limit, int) or limit < 0):
            raise StoreFault(f"limit must be a non-negative integer, got {limit!r}")
        return selector, limit

    def execute(self, query: str, records: Iterable[KV]) -> Iterator[KV]:
        """Parse eagerly (so faults surface at call time), filter lazily."""
        selector, limit = self.parse(query)
        logger.debug(f"Executing selector query {selector!r} limit={limit}")
        return self._filter(selector, limit, records)

    @staticmethod
    def _filter(selector: dict, limit: int | None, records: Iterable[KV]) -> Iterator[KV]:
        emitted = 0
        for kv in records:
            if limit is not None and emitted >= limit:
                return
            try:
                doc = json.loads(kv.value)
            except ValueError:
                continue
            if isinstance(doc, dict) and matches(doc, selector):
                emitted += 1
                yield kv
