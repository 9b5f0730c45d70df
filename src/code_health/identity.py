"""Cross-tool file identity.

The four tools name files differently: ESLint reports absolute paths, cloc
and dependency-cruiser report paths relative to the directory they ran in,
and knip sometimes truncates to the last few segments.  Everything that joins
data from two tools goes through this module.

Two references denote the same file when one is a *segment* suffix of the
other (``src/foo.ts`` matches ``/home/u/proj/src/foo.ts`` but never
``src/barfoo.ts``).  Against a set of known files, a reference resolves to
the exact canonical path when present, otherwise to the unique candidate
sharing the longest segment suffix; anything still ambiguous resolves to
nothing.
"""

from __future__ import annotations

import posixpath
import re
import threading
from collections import defaultdict
from pathlib import Path
from typing import Iterable, Optional, Union

from .logging_config import get_logger

logger = get_logger(__name__)

FileIdentity = str

_DRIVE_RE = re.compile(r"^[A-Za-z]:/")


def is_absolute(path: str) -> bool:
    return path.startswith("/") or bool(_DRIVE_RE.match(path))


def canonicalize(path: str, root: Union[str, Path]) -> FileIdentity:
    """Normalize *path* to a POSIX path relative to *root*.

    Absolute paths under *root* become relative; absolute paths elsewhere
    are kept absolute.  Separators are unified and ``.``/``..`` collapsed.
    """
    text = str(path).strip().replace("\\", "/")
    if not text:
        return ""
    normalized = posixpath.normpath(text)
    if is_absolute(normalized):
        root_norm = posixpath.normpath(str(root).replace("\\", "/"))
        if normalized == root_norm:
            return "."
        prefix = root_norm.rstrip("/") + "/"
        if normalized.startswith(prefix):
            return normalized[len(prefix) :]
        return normalized
    return normalized


def split_segments(path: str) -> tuple[str, ...]:
    """Path segments of *path* with empty and ``.`` segments removed."""
    text = posixpath.normpath(str(path).replace("\\", "/")) if path else ""
    return tuple(s for s in text.split("/") if s and s != "." and not s.endswith(":"))


def common_suffix_length(a: tuple[str, ...], b: tuple[str, ...]) -> int:
    """Number of trailing segments *a* and *b* share."""
    n = 0
    for left, right in zip(reversed(a), reversed(b)):
        if left != right:
            break
        n += 1
    return n


def matches(path_a: str, path_b: str) -> bool:
    """True if one path is a whole-segment suffix of the other.

    Symmetric; requires at least one shared segment.
    """
    a = split_segments(path_a)
    b = split_segments(path_b)
    shorter = min(len(a), len(b))
    if shorter == 0:
        return False
    return common_suffix_length(a, b) == shorter


class AmbiguityTally:
    """Thread-safe count of references dropped as ambiguous."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self.count = 0
        self.references: set[str] = set()

    def record(self, reference: str) -> None:
        with self._lock:
            self.count += 1
            self.references.add(reference)

    def seen(self, reference: str) -> bool:
        with self._lock:
            return reference in self.references


class IdentityResolver:
    """Resolve file references against a fixed set of known files.

    ``ambiguous`` counts the lookups that were dropped because more than one
    candidate matched equally well.  Resolvers created with :meth:`scoped`
    share the count, so one aggregation reports a single total.
    """

    def __init__(
        self,
        root: Union[str, Path],
        candidates: Iterable[str] = (),
        tally: Optional[AmbiguityTally] = None,
    ) -> None:
        self.root = str(root)
        self.tally = tally if tally is not None else AmbiguityTally()
        self._candidates: dict[FileIdentity, tuple[str, ...]] = {}
        self._by_basename: dict[str, list[FileIdentity]] = defaultdict(list)
        for raw in candidates:
            identity = canonicalize(raw, self.root)
            if not identity or identity in self._candidates:
                continue
            segments = split_segments(identity)
            if not segments:
                continue
            self._candidates[identity] = segments
            self._by_basename[segments[-1]].append(identity)

    def __contains__(self, identity: object) -> bool:
        return identity in self._candidates

    def __len__(self) -> int:
        return len(self._candidates)

    @property
    def candidates(self) -> list[FileIdentity]:
        return list(self._candidates)

    @property
    def ambiguous(self) -> int:
        return self.tally.count

    def canonicalize(self, path: str) -> FileIdentity:
        return canonicalize(path, self.root)

    def scoped(self, candidates: Iterable[str]) -> IdentityResolver:
        """A resolver over another tool's vocabulary, sharing root and tally."""
        return IdentityResolver(self.root, candidates, tally=self.tally)

    def resolve(self, reference: str) -> Optional[FileIdentity]:
        """Map *reference* to one known file, or None.

        Preference order: exact canonical equality, then the single
        candidate with the longest common segment suffix.  Ties fail
        closed and are counted as ambiguous.
        """
        identity = canonicalize(reference, self.root)
        if not identity:
            return None
        if identity in self._candidates:
            return identity

        segments = split_segments(identity)
        if not segments:
            return None

        best: list[FileIdentity] = []
        best_len = 0
        for candidate in self._by_basename.get(segments[-1], ()):
            cand_segments = self._candidates[candidate]
            shared = common_suffix_length(segments, cand_segments)
            if shared != min(len(segments), len(cand_segments)):
                continue
            if shared > best_len:
                best, best_len = [candidate], shared
            elif shared == best_len:
                best.append(candidate)

        if len(best) == 1:
            return best[0]
        if len(best) > 1:
            self._record_ambiguity(reference, best)
        return None

    def matches(self, path_a: str, path_b: str) -> bool:
        """Whether two references denote the same known file.

        Falls back to plain segment-suffix matching when neither reference
        names a known file.
        """
        resolved_a = self.resolve(path_a)
        resolved_b = self.resolve(path_b)
        if resolved_a is not None and resolved_b is not None:
            return resolved_a == resolved_b
        if resolved_a is None and resolved_b is None and not (
            self.tally.seen(path_a) or self.tally.seen(path_b)
        ):
            return matches(canonicalize(path_a, self.root), canonicalize(path_b, self.root))
        return False

    def _record_ambiguity(self, reference: str, options: list[FileIdentity]) -> None:
        self.tally.record(reference)
        logger.debug(
            "Ambiguous file reference %r matches %d files (%s); dropping",
            reference,
            len(options),
            ", ".join(sorted(options)[:3]),
        )
