from __future__ import annotations

import os
import re
from dataclasses import dataclass, field
from pathlib import Path, PurePosixPath

_BRACE_RE = re.compile(r"(?<!\[)\{([^{}]*,[^{}]*)(?<!\[)\}")
_GLOB_CHARS = frozenset("*?[")
_GLOB_SPECIAL_RE = re.compile(r"([*?\[\]{}])")


def normalize_posix_path(path: str | Path) -> str:
    """
    Normalize a path to a posix-style string (forward slashes).

    Both ignore patterns and query paths go through this before matching,
    so Windows separators never leak into the glob engine.
    """
    if isinstance(path, Path):
        path = str(path)
    # PurePosixPath does not treat backslashes as separators, so normalize first.
    path = path.replace("\\", "/")
    return str(PurePosixPath(path))


def is_sub_path(src: str | Path, target: str | Path) -> bool:
    """Return True when `target` lives strictly below `src`."""
    try:
        rel = os.path.relpath(os.path.abspath(target), os.path.abspath(src))
    except ValueError:
        # Different drives on Windows.
        return False
    if rel == os.curdir:
        return False
    if rel == os.pardir:
        return False
    return not rel.startswith(os.pardir + os.sep)


def escape_glob(path: str) -> str:
    """Make every glob character in `path` literal: `ext[1]` -> `ext[[]1[]]`."""
    return _GLOB_SPECIAL_RE.sub(r"[\1]", path)


def expand_braces(pattern: str) -> list[str]:
    """
    Expand `{a,b}` alternatives, innermost first: `*.{js,css}` -> `*.js`, `*.css`.

    Braces escaped as `[{]` / `[}]` are left alone.
    """
    m = _BRACE_RE.search(pattern)
    if not m:
        return [pattern]
    head, tail = pattern[:m.start()], pattern[m.end():]
    expanded: list[str] = []
    for alt in m.group(1).split(","):
        expanded.extend(expand_braces(head + alt + tail))
    return expanded


def _translate_segment(seg: str) -> str:
    i, n = 0, len(seg)
    out: list[str] = []
    while i < n:
        c = seg[i]
        i += 1
        if c == "*":
            while i < n and seg[i] == "*":
                i += 1
            out.append("[^/]*")
        elif c == "?":
            out.append("[^/]")
        elif c == "[":
            j = i
            if j < n and seg[j] in "!^":
                j += 1
            if j < n and seg[j] == "]":
                j += 1
            j = seg.find("]", j)
            if j < 0:
                out.append(re.escape(c))
                continue
            body = seg[i:j]
            i = j + 1
            negate = body[:1] in ("!", "^")
            if negate:
                body = body[1:]
            body = body.replace("\\", "\\\\").replace("[", "\\[")
            out.append(f"[{'^' if negate else ''}{body}]")
        elif c == "\\" and i < n:
            out.append(re.escape(seg[i]))
            i += 1
        else:
            out.append(re.escape(c))
    return "".join(out)


@dataclass(frozen=True)
class _Segment:
    source: str
    regex: re.Pattern | None = None

    @property
    def explicit_dot(self) -> bool:
        return self.source.startswith(".")

    def matches(self, part: str) -> bool:
        # Hidden entries are only reachable through a pattern that names the dot.
        if part.startswith(".") and not self.explicit_dot:
            return False
        if self.regex is None:
            return part == self.source
        return self.regex.fullmatch(part) is not None


_GLOBSTAR = _Segment("**")


def _compile_segments(pattern: str) -> list[_Segment]:
    segments: list[_Segment] = []
    for seg in pattern.split("/"):
        if seg == "**":
            # Consecutive globstars behave like one.
            if segments and segments[-1] is _GLOBSTAR:
                continue
            segments.append(_GLOBSTAR)
        elif _GLOB_CHARS.intersection(seg) or "\\" in seg:
            segments.append(_Segment(seg, re.compile(_translate_segment(seg))))
        else:
            segments.append(_Segment(seg))
    return segments


def _match_segments(segments: list[_Segment], parts: list[str], si: int = 0, pi: int = 0) -> bool:
    while si < len(segments):
        seg = segments[si]
        if seg is _GLOBSTAR:
            for k in range(pi, len(parts) + 1):
                if _match_segments(segments, parts, si + 1, k):
                    return True
                # `**` never walks into a hidden entry.
                if k < len(parts) and parts[k].startswith("."):
                    return False
            return False
        if pi >= len(parts) or not seg.matches(parts[pi]):
            return False
        si += 1
        pi += 1
    return pi == len(parts)


@dataclass
class GlobPattern:
    """
    A compiled glob with minimatch-style semantics.

    - `*` matches within one path segment, `?` one character, `[...]` a class
    - `**` as a whole segment spans zero or more segments
    - `{a,b}` expands to alternatives
    - segments starting with `.` only match pattern segments that start with `.`
    """

    pattern: str
    _alternatives: list[list[_Segment]] = field(init=False, default_factory=list, repr=False)

    def __post_init__(self) -> None:
        normalized = normalize_posix_path(self.pattern) if self.pattern else ""
        self._alternatives = [_compile_segments(alt) for alt in expand_braces(normalized)]

    def match(self, path: str | Path) -> bool:
        parts = normalize_posix_path(path).split("/")
        return any(_match_segments(segments, parts) for segments in self._alternatives)


def compile_glob(pattern: str) -> GlobPattern:
    return GlobPattern(pattern)


def glob_matches(path: str | Path, pattern: str) -> bool:
    """One-off match of `path` against `pattern`; prefer `compile_glob` in loops."""
    return compile_glob(pattern).match(path)


def iter_wanted_files(root: str | Path, want=None):
    """
    Walk `root` and yield `(abs_path, rel_posix)` for every regular file.

    Directories rejected by `want` are pruned, so nothing beneath them is visited.
    Traversal is sorted to keep archive member order stable.
    """
    root = os.path.abspath(root)
    for dirpath, dirnames, filenames in os.walk(root):
        dirnames[:] = sorted(
            d for d in dirnames if want is None or want(os.path.join(dirpath, d))
        )
        for filename in sorted(filenames):
            abs_path = os.path.join(dirpath, filename)
            if not os.path.isfile(abs_path):
                continue
            if want is not None and not want(abs_path):
                continue
            yield abs_path, normalize_posix_path(os.path.relpath(abs_path, root))
