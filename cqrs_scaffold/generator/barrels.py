"""Parsing and merging of TypeScript aggregation files.

Aggregation files come in two shapes:

* list-style -- an array literal located by an anchor pattern, e.g.
  ``export const INVOICE_HANDLERS = [ ... ];`` or ``imports: [ ... ]``.
  New identifiers go into the array, their ``import`` lines after the last
  existing import.
* line-style -- a file of ``export * from './x';`` statements.

Insertion is purely textual: existing entries, comments and formatting are
left untouched, and identifiers already present are never duplicated.
Entries with a known category rank are placed before the first existing
entry of a higher rank, so a barrel keeps sagas before commands before
queries before events.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Iterable, Optional

from cqrs_scaffold.models import BarrelEntry, entry_rank


# ---------------------------------------------------------------------------
# Patterns
# ---------------------------------------------------------------------------

_RE_IMPORT = re.compile(r"^import\b[^;]*;[ \t]*(?:\r?\n)?", re.MULTILINE)

_RE_EXPORT_FROM = re.compile(
    r"""^[ \t]*export\s+\*\s+from\s+['"]([^'"]+)['"][ \t]*;?[ \t]*(?:\r?\n)?""",
    re.MULTILINE,
)

_RE_ITEM_IDENTIFIER = re.compile(r"(?:\.\.\.)?\s*([A-Za-z_$][\w$]*)")

_RE_INDENT = re.compile(r"[ \t]*")

_OPENERS = "([{"
_CLOSERS = ")]}"
_QUOTES = "'\"`"


# ---------------------------------------------------------------------------
# List literals
# ---------------------------------------------------------------------------

@dataclass
class ListItem:
    """One top-level element of an array literal (offsets into the file)."""

    identifier: str
    start: int
    end: int


@dataclass
class ListLiteral:
    """Location and contents of an anchored array literal."""

    open_index: int
    close_index: int
    items: list[ListItem] = field(default_factory=list)

    @property
    def identifiers(self) -> list[str]:
        return [item.identifier for item in self.items]


def mask_comments(text: str) -> str:
    """Blank out ``//`` and ``/* */`` comments, preserving offsets and newlines.

    String literals are respected so ``'http://...'`` is not treated as a
    comment.
    """
    out = list(text)
    i = 0
    length = len(text)
    quote: Optional[str] = None
    while i < length:
        ch = text[i]
        if quote:
            if ch == "\\":
                i += 2
                continue
            if ch == quote:
                quote = None
            i += 1
            continue
        if ch in _QUOTES:
            quote = ch
            i += 1
            continue
        if text.startswith("//", i):
            end = text.find("\n", i)
            end = length if end == -1 else end
            for j in range(i, end):
                out[j] = " "
            i = end
            continue
        if text.startswith("/*", i):
            end = text.find("*/", i + 2)
            end = length if end == -1 else end + 2
            for j in range(i, end):
                if out[j] != "\n":
                    out[j] = " "
            i = end
            continue
        i += 1
    return "".join(out)


def find_list(text: str, anchor: str) -> Optional[ListLiteral]:
    """Locate the array literal that *anchor* opens.

    Args:
        text: File content.
        anchor: Regex whose match ends with the literal's opening ``[``.

    Returns:
        The parsed literal, or ``None`` if the anchor is missing or the
        literal is not terminated.
    """
    masked = mask_comments(text)
    match = re.search(anchor, masked)
    if match is None or not match.group(0).endswith("["):
        return None

    open_index = match.end() - 1
    items: list[ListItem] = []
    depth = 0
    quote: Optional[str] = None
    start: Optional[int] = None

    def _close_item(end: int) -> None:
        if start is None:
            return
        raw = masked[start:end].rstrip()
        if not raw:
            return
        ident = _RE_ITEM_IDENTIFIER.match(raw)
        identifier = ident.group(1) if ident else raw
        items.append(ListItem(identifier=identifier, start=start, end=start + len(raw)))

    i = open_index + 1
    while i < len(masked):
        ch = masked[i]
        if quote:
            if ch == "\\":
                i += 2
                continue
            if ch == quote:
                quote = None
        elif ch in _QUOTES:
            quote = ch
            if start is None:
                start = i
        elif ch in _OPENERS:
            depth += 1
            if start is None:
                start = i
        elif ch in _CLOSERS:
            if depth == 0:
                if ch != "]":
                    return None
                _close_item(i)
                return ListLiteral(open_index=open_index, close_index=i, items=items)
            depth -= 1
        elif ch == "," and depth == 0:
            _close_item(i)
            start = None
        elif not ch.isspace() and start is None:
            start = i
        i += 1
    return None


def list_identifiers(text: str, anchor: str) -> Optional[list[str]]:
    """Identifiers registered in the anchored list, or ``None`` if absent."""
    literal = find_list(text, anchor)
    if literal is None:
        return None
    return literal.identifiers


def _line_start(text: str, index: int) -> int:
    return text.rfind("\n", 0, index) + 1


def _indent_at(text: str, index: int) -> str:
    start = _line_start(text, index)
    return _RE_INDENT.match(text, start).group(0)


def _insert_list_item(text: str, literal: ListLiteral, identifier: str) -> str:
    rank = entry_rank(identifier)
    before: Optional[ListItem] = None
    if rank is not None:
        for item in literal.items:
            item_rank = entry_rank(item.identifier)
            if item_rank is not None and item_rank > rank:
                before = item
                break

    open_i, close_i = literal.open_index, literal.close_index
    base_indent = _indent_at(text, open_i)

    if "\n" not in text[open_i:close_i]:
        # Single-line literal.
        if not literal.items:
            block = f"[\n{base_indent}  {identifier},\n{base_indent}]"
            return text[:open_i] + block + text[close_i + 1:]
        if before is not None:
            return text[:before.start] + f"{identifier}, " + text[before.start:]
        last = literal.items[-1]
        if "," in mask_comments(text)[last.end:close_i]:
            return text[:close_i].rstrip() + f" {identifier}," + text[close_i:]
        return text[:last.end] + f", {identifier}" + text[last.end:]

    if before is not None:
        line_start = _line_start(text, before.start)
        indent = text[line_start:before.start]
        if indent.strip():
            # Another element shares the line; insert inline.
            return text[:before.start] + f"{identifier}, " + text[before.start:]
        return text[:line_start] + f"{indent}{identifier},\n" + text[line_start:]

    if literal.items:
        last = literal.items[-1]
        indent = _indent_at(text, last.start)
        if "," not in mask_comments(text)[last.end:close_i]:
            text = text[:last.end] + "," + text[last.end:]
            close_i += 1
    else:
        indent = base_indent + "  "

    close_line = _line_start(text, close_i)
    if text[close_line:close_i].strip():
        return text[:close_i] + f"\n{indent}{identifier},\n{base_indent}" + text[close_i:]
    return text[:close_line] + f"{indent}{identifier},\n" + text[close_line:]


def insert_list_entries(
    text: str,
    anchor: str,
    identifiers: Iterable[str],
) -> Optional[str]:
    """Insert each identifier into the anchored list unless already present.

    Returns:
        The updated text, or ``None`` when the anchor cannot be located.
    """
    if find_list(text, anchor) is None:
        return None
    for identifier in identifiers:
        literal = find_list(text, anchor)
        if literal is None:
            return None
        if identifier in literal.identifiers:
            continue
        text = _insert_list_item(text, literal, identifier)
    return text


# ---------------------------------------------------------------------------
# Import lines
# ---------------------------------------------------------------------------

def insert_imports(text: str, import_lines: Iterable[str]) -> str:
    """Add import lines after the last existing import, skipping duplicates."""
    existing = {line.strip() for line in text.splitlines()}
    missing: list[str] = []
    for line in import_lines:
        if line and line.strip() not in existing and line not in missing:
            missing.append(line)
    if not missing:
        return text

    block = "".join(f"{line}\n" for line in missing)
    matches = list(_RE_IMPORT.finditer(mask_comments(text)))
    if matches:
        pos = matches[-1].end()
        if not text[:pos].endswith("\n"):
            block = "\n" + block
        return text[:pos] + block + text[pos:]
    if text.strip():
        block += "\n"
    return block + text


# ---------------------------------------------------------------------------
# Export statements (line-style barrels)
# ---------------------------------------------------------------------------

def export_specifiers(text: str) -> list[str]:
    """Module specifiers re-exported with ``export * from '...'``."""
    return [m.group(1) for m in _RE_EXPORT_FROM.finditer(mask_comments(text))]


def insert_statements(text: str, entries: Iterable[BarrelEntry]) -> str:
    """Insert ``export * from`` statements, keeping category order."""
    for entry in entries:
        if not entry.statement:
            continue
        masked = mask_comments(text)
        matches = list(_RE_EXPORT_FROM.finditer(masked))
        if any(m.group(1) == entry.identifier for m in matches):
            continue
        rank = entry.rank
        before = None
        if rank is not None:
            for m in matches:
                other = entry_rank(m.group(1))
                if other is not None and other > rank:
                    before = m
                    break
        if before is not None:
            pos = before.start()
            text = text[:pos] + f"{entry.statement}\n" + text[pos:]
        else:
            if text and not text.endswith("\n"):
                text += "\n"
            text += f"{entry.statement}\n"
    return text
