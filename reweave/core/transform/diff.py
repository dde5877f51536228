"""Diff generation for code transformations.

Every change is reported three ways:
- unified: patch text (``--- / +++ / @@``) usable with ``patch``/``git apply``
- visual: line entries with old/new line numbers, for UI rendering
- character_level: added/removed/kept character runs, for inline highlights

Lines are compared with their terminators, so ``"a\\nb"`` and ``"a\\nb\\n"``
differ in the last line. ``DiffLine.content`` never includes the terminator.
"""

import difflib
from typing import List

from .models import CharacterDiff, Diff, DiffLine, DiffStats

NO_NEWLINE_MARKER = "\\ No newline at end of file"
ELLIPSIS = "..."


def _split_lines(text: str) -> List[str]:
    """Split on ``\\n`` keeping terminators; a trailing newline adds no empty line."""
    if not text:
        return []
    parts = text.split("\n")
    lines = [part + "\n" for part in parts[:-1]]
    if parts[-1]:
        lines.append(parts[-1])
    return lines


def _strip_terminator(line: str) -> str:
    if line.endswith("\n"):
        line = line[:-1]
    if line.endswith("\r"):
        line = line[:-1]
    return line


def _line_matcher(original: str, transformed: str):
    old_lines = _split_lines(original)
    new_lines = _split_lines(transformed)
    matcher = difflib.SequenceMatcher(None, old_lines, new_lines, autojunk=False)
    return old_lines, new_lines, matcher


def unified_diff(
    original: str,
    transformed: str,
    from_label: str = "Original",
    to_label: str = "Transformed",
    context: int = 3,
) -> str:
    """Patch text between two strings. Identical inputs give ``""``."""
    old_lines = _split_lines(original)
    new_lines = _split_lines(transformed)

    out = []
    for line in difflib.unified_diff(
        old_lines, new_lines, fromfile=from_label, tofile=to_label, n=context
    ):
        if line.endswith("\n"):
            out.append(line)
        else:
            # Last line of a file without a trailing newline
            out.append(line + "\n")
            out.append(NO_NEWLINE_MARKER + "\n")
    return "".join(out)


def line_diff(original: str, transformed: str) -> List[DiffLine]:
    """Line-level alignment as visual entries.

    Unchanged entries carry both line numbers, added only the new one,
    removed only the old one. Within a replaced block removed lines come
    first.
    """
    old_lines, new_lines, matcher = _line_matcher(original, transformed)
    entries: List[DiffLine] = []

    for tag, i1, i2, j1, j2 in matcher.get_opcodes():
        if tag == "equal":
            for offset in range(i2 - i1):
                old_no = i1 + offset + 1
                entries.append(DiffLine(
                    type="unchanged",
                    line_number=old_no,
                    content=_strip_terminator(old_lines[i1 + offset]),
                    old_line_number=old_no,
                    new_line_number=j1 + offset + 1,
                ))
            continue

        if tag in ("delete", "replace"):
            for i in range(i1, i2):
                entries.append(DiffLine(
                    type="removed",
                    line_number=i + 1,
                    content=_strip_terminator(old_lines[i]),
                    old_line_number=i + 1,
                ))
        if tag in ("insert", "replace"):
            for j in range(j1, j2):
                entries.append(DiffLine(
                    type="added",
                    line_number=j + 1,
                    content=_strip_terminator(new_lines[j]),
                    new_line_number=j + 1,
                ))

    return entries


def char_diff(original: str, transformed: str) -> List[CharacterDiff]:
    """Character-level runs. Adjacent runs never share the same flags."""
    matcher = difflib.SequenceMatcher(None, original, transformed, autojunk=False)
    runs: List[CharacterDiff] = []

    for tag, i1, i2, j1, j2 in matcher.get_opcodes():
        if tag == "equal":
            runs.append(CharacterDiff(value=original[i1:i2]))
            continue
        if i2 > i1:
            runs.append(CharacterDiff(value=original[i1:i2], removed=True))
        if j2 > j1:
            runs.append(CharacterDiff(value=transformed[j1:j2], added=True))

    return runs


def compute_diff(original: str, transformed: str, context: int = 3) -> Diff:
    """All three representations in one call. ``context`` applies to the patch text."""
    return Diff(
        original=original,
        transformed=transformed,
        unified=unified_diff(original, transformed, context=context),
        visual=line_diff(original, transformed),
        character_level=char_diff(original, transformed),
    )


def stats(diff: Diff) -> DiffStats:
    added = sum(1 for line in diff.visual if line.type == "added")
    removed = sum(1 for line in diff.visual if line.type == "removed")
    unchanged = sum(1 for line in diff.visual if line.type == "unchanged")
    return DiffStats(added=added, removed=removed, unchanged=unchanged, total=added + removed)


def with_context(original: str, transformed: str, k: int = 3) -> List[DiffLine]:
    """Changed lines plus up to ``k`` unchanged lines around each change.

    Gaps between kept lines collapse into a single ``...`` entry with line
    number -1. Returns ``[]`` when nothing changed.
    """
    all_lines = line_diff(original, transformed)
    changed = [i for i, line in enumerate(all_lines) if line.type != "unchanged"]
    if not changed:
        return []

    keep = set(changed)
    for index in changed:
        low = max(0, index - k)
        high = min(len(all_lines) - 1, index + k)
        for i in range(low, high + 1):
            if all_lines[i].type == "unchanged":
                keep.add(i)

    ordered = sorted(keep)
    result: List[DiffLine] = []
    for pos, index in enumerate(ordered):
        result.append(all_lines[index])
        if pos + 1 < len(ordered) and ordered[pos + 1] - index > 1:
            result.append(DiffLine(
                type="unchanged",
                line_number=-1,
                content=ELLIPSIS,
                old_line_number=-1,
                new_line_number=-1,
            ))
    return result


def rename_diff(content: str, old_path: str, new_path: str) -> Diff:
    """Diff for a pure move: every line removed from old, then added to new."""
    raw_lines = _split_lines(content)
    lines = [_strip_terminator(line) for line in raw_lines]
    count = len(lines)

    visual = [
        DiffLine(type="removed", line_number=n, content=line, old_line_number=n)
        for n, line in enumerate(lines, start=1)
    ]
    visual.extend(
        DiffLine(type="added", line_number=n, content=line, new_line_number=n)
        for n, line in enumerate(lines, start=1)
    )

    if count:
        body = [f"--- {old_path}\n", f"+++ {new_path}\n", f"@@ -1,{count} +1,{count} @@\n"]
        body.extend(f"-{line}\n" for line in lines)
        body.extend(f"+{line}\n" for line in lines)
        if not content.endswith("\n"):
            body.insert(3 + count, NO_NEWLINE_MARKER + "\n")
            body.append(NO_NEWLINE_MARKER + "\n")
        unified = "".join(body)
    else:
        unified = f"--- {old_path}\n+++ {new_path}\n"

    return Diff(
        original=content,
        transformed=content,
        unified=unified,
        visual=visual,
        character_level=[],
    )


def are_identical(original: str, transformed: str) -> bool:
    return original == transformed
