"""Hit counters written by instrumented modules inside a worker.

Instrumented code calls :func:`declare` once at import and :func:`hit` for
every counter it passes. The worker hooks of the instrument provider read
the counters back with :func:`snapshot`.
"""

from __future__ import annotations

import threading
from typing import Any

_KINDS = {"s": "statements", "f": "functions", "b": "branches"}

_lock = threading.Lock()
_counters: dict[str, dict[str, dict[str, int]]] = {}
_statement_lines: dict[str, dict[str, int]] = {}


def declare(
    path: str,
    statements: dict[str, int],
    functions: list[str],
    branches: list[str],
) -> None:
    """Register every counter of *path* so unexecuted code is reported as zero."""
    with _lock:
        entry = _counters.setdefault(path, {"statements": {}, "functions": {}, "branches": {}})
        for key in statements:
            entry["statements"].setdefault(key, 0)
        for key in functions:
            entry["functions"].setdefault(key, 0)
        for key in branches:
            entry["branches"].setdefault(key, 0)
        _statement_lines[path] = dict(statements)


def hit(path: str, kind: str, key: str) -> None:
    # Hot path: no lock; a lost increment under free threading still marks the counter covered.
    entry = _counters.get(path)
    if entry is None:
        return
    bucket = entry[_KINDS[kind]]
    bucket[key] = bucket.get(key, 0) + 1


def reset() -> None:
    """Zero every counter while keeping declarations of already-imported modules."""
    with _lock:
        for entry in _counters.values():
            for bucket in entry.values():
                for key in bucket:
                    bucket[key] = 0


def snapshot() -> dict[str, Any]:
    """Return the current counters as a plain, JSON-compatible payload."""
    with _lock:
        files: dict[str, Any] = {}
        for path, entry in _counters.items():
            lines: dict[str, int] = {}
            for key, line in _statement_lines.get(path, {}).items():
                line_key = str(line)
                lines[line_key] = max(lines.get(line_key, 0), entry["statements"].get(key, 0))
            files[path] = {
                "statements": dict(entry["statements"]),
                "functions": dict(entry["functions"]),
                "branches": dict(entry["branches"]),
                "lines": lines,
            }
        return {"files": files}


def clear() -> None:
    with _lock:
        _counters.clear()
        _statement_lines.clear()


__all__ = ["clear", "declare", "hit", "reset", "snapshot"]
