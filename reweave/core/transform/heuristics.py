"""Best-effort text heuristics used by the orchestrator.

These are pattern matches over free text and source code, not parsers.
They can miss or over-match; callers treat their output as a hint.
"""

import re
from pathlib import PurePosixPath
from typing import Iterable, List, Optional, Sequence

from ..constants import DEFAULT_MANIFEST, DEPENDENCY_MANIFESTS, RISK_LOW, RISK_ORDER

# =============================================================================
# Package names in task descriptions
# =============================================================================

_PACKAGE_LIST_RE = re.compile(r"packages?:\s*([a-z0-9@\-/,\s]+)", re.IGNORECASE)
_BACKTICK_RE = re.compile(r"`([a-z0-9@\-/]+)`", re.IGNORECASE)
_UPDATE_RE = re.compile(r"update\s+([a-z0-9@\-/]+)", re.IGNORECASE)
_PACKAGE_NAME_RE = re.compile(r"^[a-z0-9@\-/]+$", re.IGNORECASE)


def extract_packages(description: str) -> List[str]:
    """Package identifiers mentioned in a task description.

    Recognizes ``packages: a, b`` lists, backtick-quoted tokens and
    ``update X`` phrasing. Order of first appearance is kept, duplicates
    dropped.

    >>> extract_packages("Update react. packages: react-dom, `@types/react`")
    ['react-dom', '@types/react', 'react']
    """
    if not description:
        return []

    found: List[str] = []

    list_match = _PACKAGE_LIST_RE.search(description)
    if list_match:
        for item in list_match.group(1).split(","):
            item = item.strip()
            if item and _PACKAGE_NAME_RE.match(item):
                found.append(item)

    found.extend(_BACKTICK_RE.findall(description))

    update_match = _UPDATE_RE.search(description)
    if update_match:
        found.append(update_match.group(1))

    return list(dict.fromkeys(found))


# =============================================================================
# Embedded markup (JSX-like) detection
# =============================================================================

_MARKUP_PATTERNS = [
    re.compile(r"<[A-Z][a-zA-Z0-9]*"),  # component tags
    re.compile(r"<[a-z]+[^>]*>"),  # element tags
    re.compile(r"React\.createElement"),
    re.compile(r"jsx\s*\("),
    re.compile(r"return\s*\(\s*<"),
    re.compile(r"=\s*<[A-Za-z]"),
]


def contains_markup(content: str) -> bool:
    """True when source text looks like it embeds element markup."""
    return any(pattern.search(content) for pattern in _MARKUP_PATTERNS)


def markup_target_path(path: str, extension_map: dict) -> Optional[str]:
    """New path for a file whose extension cannot hold markup, else None."""
    for old_ext, new_ext in extension_map.items():
        if path.endswith(old_ext):
            return path[: -len(old_ext)] + new_ext
    return None


# =============================================================================
# Time saved
# =============================================================================

_HOURS_RE = re.compile(r"(\d+)\s*h")
_MINUTES_RE = re.compile(r"(\d+)\s*m")


def estimate_minutes_saved(lines_changed: int) -> int:
    """Roughly one minute of manual work per ten changed lines."""
    return round(lines_changed / 10)


def format_time_saved(minutes: int) -> str:
    if minutes < 1:
        return "< 1 minute"
    if minutes < 60:
        return f"{minutes} minute" if minutes == 1 else f"{minutes} minutes"
    hours, rest = divmod(minutes, 60)
    if rest:
        return f"{hours}h {rest}m"
    return f"{hours} hour" if hours == 1 else f"{hours} hours"


def parse_time_saved(text: str) -> int:
    """Minutes in a string produced by :func:`format_time_saved`.

    Also accepts ``"2 hours"``. Unparseable text counts as 0.
    """
    if not text or "< 1" in text:
        return 0

    minutes = 0
    hours_match = _HOURS_RE.search(text)
    if hours_match:
        minutes += int(hours_match.group(1)) * 60
    minutes_match = _MINUTES_RE.search(text)
    if minutes_match:
        minutes += int(minutes_match.group(1))
    return minutes


def format_bytes(size: int) -> str:
    if size < 1024:
        return f"{size} B"
    if size < 1024 * 1024:
        return f"{size / 1024:.1f} KB"
    return f"{size / (1024 * 1024):.1f} MB"


# =============================================================================
# Manifests and risk
# =============================================================================


def is_manifest(path: str, manifests: Sequence[str] = DEPENDENCY_MANIFESTS) -> bool:
    return PurePosixPath(path).name in manifests


def resolve_manifest(
    affected_files: Iterable[str],
    repository_paths: Iterable[str],
    manifests: Sequence[str] = DEPENDENCY_MANIFESTS,
) -> str:
    """Manifest a dependency task should write.

    First affected file that is a known manifest; otherwise the first known
    manifest present at the repository root; otherwise ``package.json``.
    """
    for path in affected_files:
        if is_manifest(path, manifests):
            return path

    present = set(repository_paths)
    for name in manifests:
        if name in present:
            return name
    return DEFAULT_MANIFEST


def max_risk_level(levels: Iterable[str]) -> str:
    """Highest of the given risk levels; unknown levels rank as low."""
    highest = RISK_LOW
    for level in levels:
        if RISK_ORDER.get(level, 0) > RISK_ORDER.get(highest, 0):
            highest = level
    return highest
