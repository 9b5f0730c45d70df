"""Ignore rules shared by the tool adapters and the file watcher.

The rest of the system treats an :class:`IgnoreRules` instance as an opaque
predicate (``rules.is_ignored(relative_path)``); the pattern list itself is
also handed verbatim to tools that accept ignore globs.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable, Optional

from .logging_config import get_logger

logger = get_logger(__name__)

BUILT_IN_IGNORES: tuple[str, ...] = (
    # Dependencies and lock files
    "**/node_modules/**",
    "**/package-lock.json",
    "**/yarn.lock",
    "**/pnpm-lock.yaml",
    "**/bun.lockb",
    "**/composer.lock",
    "**/Gemfile.lock",
    "**/Pipfile.lock",
    "**/poetry.lock",
    # Build outputs and caches
    "**/dist/**",
    "**/build/**",
    "**/out/**",
    "**/.next/**",
    "**/.nuxt/**",
    "**/.output/**",
    "**/.turbo/**",
    "**/.vite/**",
    "**/.parcel-cache/**",
    "**/.cache/**",
    "**/coverage/**",
    "**/tmp/**",
    "**/temp/**",
    # Version control and system files
    "**/.git/**",
    "**/.svn/**",
    "**/.hg/**",
    "**/.DS_Store",
    "**/Thumbs.db",
    "**/*.tmp",
    "**/*.temp",
    # Logs and environment files
    "**/*.log",
    "**/.env*",
    "**/.local",
    # Tool configuration
    "**/*.config.*",
    "**/jest.config*",
    "**/tsup.config*",
    "**/tailwind.config*",
    "**/postcss.config*",
    "**/babel.config*",
    "**/.babelrc*",
    "**/.eslintrc*",
    "**/.prettierrc*",
    "**/renovate.json",
    "**/.renovaterc*",
    # Editors
    "**/.vscode/**",
    "**/.idea/**",
    "**/*.swp",
    "**/*.swo",
    "**/*~",
    # Project documents
    "**/LICENSE*",
    "**/CHANGELOG*",
    "**/CONTRIBUTING*",
    "**/CODE_OF_CONDUCT*",
    # Generated code
    "**/*generated*",
    "**/*Generated*",
    "**/__generated__/**",
    "**/generated/**",
    # Python caches
    "**/__pycache__/**",
    "**/.venv/**",
    "**/venv/**",
)


def glob_to_regex(pattern: str) -> re.Pattern[str]:
    """Compile a gitignore-style glob into a regex over POSIX relative paths.

    ``**`` spans directories, ``*`` and ``?`` stay within one segment, a
    pattern without a slash matches at any depth, a leading slash anchors
    to the root and a trailing slash matches the directory's contents.
    """
    pat = pattern.strip()
    anchored = pat.startswith("/")
    pat = pat.lstrip("/")
    if pat.endswith("/"):
        pat = pat + "**"
    if not anchored and "/" not in pat:
        pat = "**/" + pat

    out = []
    i = 0
    while i < len(pat):
        c = pat[i]
        if pat.startswith("**/", i):
            out.append("(?:.*/)?")
            i += 3
        elif pat.startswith("/**", i) and i + 3 == len(pat):
            out.append("(?:/.*)?")
            i += 3
        elif pat.startswith("**", i):
            out.append(".*")
            i += 2
        elif c == "*":
            out.append("[^/]*")
            i += 1
        elif c == "?":
            out.append("[^/]")
            i += 1
        elif c == "[":
            end = pat.find("]", i + 1)
            if end == -1:
                out.append(re.escape(c))
                i += 1
            else:
                body = pat[i + 1 : end]
                if body.startswith("!"):
                    body = "^" + body[1:]
                out.append(f"[{body}]")
                i = end + 1
        else:
            out.append(re.escape(c))
            i += 1
    # A pattern naming a directory also covers everything below it.
    return re.compile("".join(out) + "(?:/.*)?$")


@dataclass(frozen=True)
class IgnoreRules:
    """Ordered ignore patterns; later ``!negations`` re-include paths."""

    patterns: tuple[str, ...]
    _compiled: tuple[tuple[bool, re.Pattern[str]], ...] = field(
        default=(), repr=False, compare=False
    )

    def __post_init__(self) -> None:
        compiled = []
        for raw in self.patterns:
            text = raw.strip()
            if not text or text.startswith("#"):
                continue
            negate = text.startswith("!")
            if negate:
                text = text[1:]
            compiled.append((negate, glob_to_regex(text)))
        object.__setattr__(self, "_compiled", tuple(compiled))

    def is_ignored(self, relative_path: str) -> bool:
        """Return True if *relative_path* (POSIX, relative to root) is excluded."""
        path = relative_path.replace("\\", "/")
        while path.startswith("./"):
            path = path[2:]
        ignored = False
        for negate, regex in self._compiled:
            if regex.match(path):
                ignored = not negate
        return ignored

    @property
    def tool_patterns(self) -> list[str]:
        """Positive patterns only, for tools that take plain ignore globs."""
        return [p for p in self.patterns if p.strip() and not p.strip().startswith(("!", "#"))]


def read_gitignore(root: Path) -> list[str]:
    """Return the non-comment lines of ``<root>/.gitignore``."""
    path = root / ".gitignore"
    if not path.exists():
        return []
    try:
        content = path.read_text(encoding="utf-8", errors="replace")
    except OSError as exc:
        logger.warning("Could not read %s: %s", path, exc)
        return []
    return [
        line.strip()
        for line in content.splitlines()
        if line.strip() and not line.lstrip().startswith("#")
    ]


def build_ignore_rules(
    root: Path,
    exclude: Optional[Iterable[str]] = None,
    use_gitignore: bool = True,
) -> IgnoreRules:
    """Built-in ignores, then the root's .gitignore, then user excludes."""
    patterns: list[str] = list(BUILT_IN_IGNORES)
    if use_gitignore:
        patterns.extend(read_gitignore(root))
    patterns.extend(p.strip() for p in (exclude or ()) if p.strip())
    return IgnoreRules(patterns=tuple(patterns))
