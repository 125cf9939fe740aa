"""Glob matching over working-set paths, plus the filter rewrites used when widening."""

import posixpath
import re
from typing import List, Optional

import pathspec

_BRACE_RE = re.compile(r"\{([^{}]*)\}")


def expand_braces(pattern: str) -> List[str]:
    """Expand shell-style {a,b} alternatives: "*.{js,css}" -> ["*.js", "*.css"]."""
    m = _BRACE_RE.search(pattern)
    if not m:
        return [pattern]
    head, tail = pattern[:m.start()], pattern[m.end():]
    out: List[str] = []
    for alt in m.group(1).split(","):
        out.extend(expand_braces(head + alt + tail))
    return out


def compile_glob(patterns: List[str]) -> pathspec.PathSpec:
    lines: List[str] = []
    for p in patterns:
        lines.extend(expand_braces(p.strip()))
    return pathspec.PathSpec.from_lines("gitwildmatch", [ln for ln in lines if ln])


def matches(spec: pathspec.PathSpec, path: str) -> bool:
    return spec.match_file(path) or spec.match_file(posixpath.basename(path))


def split_filters(file_filter: Optional[str]) -> List[str]:
    """A filter may list several globs separated by commas or whitespace."""
    if not file_filter:
        return []
    parts: List[str] = []
    for chunk in expand_braces(file_filter):
        parts.extend(p for p in re.split(r"[,\s]+", chunk) if p)
    return parts


def extension_only(file_filter: str) -> Optional[str]:
    """"sections/*basket*.liquid" -> "*.liquid"; None when the filter has no extension."""
    exts = []
    for part in split_filters(file_filter):
        _, ext = posixpath.splitext(posixpath.basename(part))
        if ext and "*" not in ext and f"*{ext}" not in exts:
            exts.append(f"*{ext}")
    widened = ",".join(exts)
    return widened if widened and widened != file_filter else None


def directory_only(file_filter: str) -> Optional[str]:
    """"sections/*basket*.liquid" -> "sections/**"; None when the filter has no directory."""
    dirs = []
    for part in split_filters(file_filter):
        d = posixpath.dirname(part).rstrip("/")
        if d and d not in ("**", "*"):
            candidate = f"{d}/**"
            if candidate not in dirs:
                dirs.append(candidate)
    widened = ",".join(dirs)
    return widened if widened and widened != file_filter else None
