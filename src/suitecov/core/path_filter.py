"""Include/exclude filtering of covered file paths."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING

from pathspec import PathSpec

from suitecov._meta import logger

if TYPE_CHECKING:
    from collections.abc import Iterable, Sequence


def _dedupe(patterns: Iterable[str]) -> tuple[str, ...]:
    # de-dupe, preserve order
    seen: set[str] = set()
    out: list[str] = []
    for p in patterns:
        s = str(p).replace("\\", "/")
        if s not in seen:
            seen.add(s)
            out.append(s)
    return tuple(out)


@dataclass(frozen=True, slots=True)
class PathFilter:
    """Include/exclude glob filter for source file paths.

    Patterns use gitignore-style globs and are matched against the path
    relative to ``base``; paths outside ``base`` are matched as given.
    """

    include: tuple[str, ...]
    exclude: tuple[str, ...]
    base: Path
    _include_spec: PathSpec
    _exclude_spec: PathSpec

    def __init__(
        self,
        include: Sequence[str] = (),
        exclude: Sequence[str] = (),
        *,
        base: Path,
    ) -> None:
        inc = _dedupe(include)
        exc = _dedupe(exclude)
        object.__setattr__(self, "include", inc)
        object.__setattr__(self, "exclude", exc)
        object.__setattr__(self, "base", base)
        object.__setattr__(self, "_include_spec", PathSpec.from_lines("gitwildmatch", inc))
        object.__setattr__(self, "_exclude_spec", PathSpec.from_lines("gitwildmatch", exc))

    def label(self, path: str | Path) -> str:
        """Return the base-relative posix path, or the raw posix path when outside ``base``."""
        p = Path(path)
        try:
            rel = p if p.is_absolute() else (self.base / p)
            return rel.resolve().relative_to(self.base.resolve()).as_posix()
        except (OSError, RuntimeError, ValueError):
            return p.as_posix()

    def is_inside(self, path: str | Path) -> bool:
        p = Path(path)
        try:
            (p if p.is_absolute() else self.base / p).resolve().relative_to(self.base.resolve())
        except (OSError, RuntimeError, ValueError):
            return False
        return True

    def allow(self, path: str | Path) -> bool:
        rel = self.label(path)
        inc = not self.include or self._include_spec.match_file(rel)
        exc = bool(self.exclude) and self._exclude_spec.match_file(rel)
        logger.debug("path filter %s include=%s exclude=%s", rel, inc, exc)
        return inc and not exc


__all__ = ["PathFilter"]
