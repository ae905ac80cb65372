"""Canonical structured-document model.

A document is an ordered sequence of top-level blocks. Blocks form a closed
set of frozen dataclass variants, each tagged with a ``BlockKind``; inline
content is made of ``InlineRun`` and ``InlineEquation`` leaves. Nodes are
immutable, so a mutation of the document always swaps whole blocks.
"""

from __future__ import annotations

import re
from collections.abc import Iterable, Iterator
from dataclasses import dataclass, field, replace
from enum import StrEnum
from typing import ClassVar, Union


class BlockKind(StrEnum):
    PARAGRAPH = "paragraph"
    HEADING = "heading"
    BULLETED_LIST = "bulleted_list"
    NUMBERED_LIST = "numbered_list"
    LIST_ITEM = "list_item"
    QUOTE = "quote"
    RULE = "rule"
    IMAGE = "image"
    EQUATION = "equation"
    CODE_BLOCK = "code_block"
    TABLE = "table"
    TABLE_ROW = "table_row"
    TABLE_CELL = "table_cell"


class Mark(StrEnum):
    BOLD = "bold"
    ITALIC = "italic"
    UNDERLINE = "underline"
    STRIKETHROUGH = "strikethrough"
    CODE = "code"
    SUPERSCRIPT = "superscript"
    SUBSCRIPT = "subscript"


@dataclass(frozen=True)
class InlineRun:
    """Leaf text with formatting marks and an optional link target."""

    text: str
    marks: frozenset[Mark] = frozenset()
    href: str | None = None

    def with_marks(self, *marks: Mark) -> InlineRun:
        return replace(self, marks=self.marks | frozenset(marks))

    def with_link(self, href: str) -> InlineRun:
        return replace(self, href=href)

    def same_format(self, other: InlineRun) -> bool:
        return self.marks == other.marks and self.href == other.href


@dataclass(frozen=True)
class InlineEquation:
    """Inline LaTeX expression (``$...$``)."""

    tex: str


Inline = Union[InlineRun, InlineEquation]


@dataclass(frozen=True)
class Paragraph:
    kind: ClassVar[BlockKind] = BlockKind.PARAGRAPH
    children: tuple[Inline, ...] = ()
    id: str | None = field(default=None, compare=False)


@dataclass(frozen=True)
class Heading:
    kind: ClassVar[BlockKind] = BlockKind.HEADING
    level: int = 1
    children: tuple[Inline, ...] = ()
    id: str | None = field(default=None, compare=False)

    def __post_init__(self):
        if not 1 <= self.level <= 6:
            raise ValueError(f"Heading level must be between 1 and 6, got {self.level}")


@dataclass(frozen=True)
class Quote:
    kind: ClassVar[BlockKind] = BlockKind.QUOTE
    children: tuple[Inline, ...] = ()
    id: str | None = field(default=None, compare=False)


@dataclass(frozen=True)
class ListItem:
    """A list entry; ``blocks`` holds nested lists."""

    kind: ClassVar[BlockKind] = BlockKind.LIST_ITEM
    children: tuple[Inline, ...] = ()
    blocks: tuple[Block, ...] = ()
    id: str | None = field(default=None, compare=False)


@dataclass(frozen=True)
class BulletedList:
    kind: ClassVar[BlockKind] = BlockKind.BULLETED_LIST
    items: tuple[ListItem, ...] = ()
    id: str | None = field(default=None, compare=False)


@dataclass(frozen=True)
class NumberedList:
    kind: ClassVar[BlockKind] = BlockKind.NUMBERED_LIST
    items: tuple[ListItem, ...] = ()
    id: str | None = field(default=None, compare=False)


@dataclass(frozen=True)
class Rule:
    kind: ClassVar[BlockKind] = BlockKind.RULE
    id: str | None = field(default=None, compare=False)


@dataclass(frozen=True)
class Image:
    kind: ClassVar[BlockKind] = BlockKind.IMAGE
    url: str = ""
    alt: str = ""
    id: str | None = field(default=None, compare=False)


@dataclass(frozen=True)
class Equation:
    kind: ClassVar[BlockKind] = BlockKind.EQUATION
    tex: str = ""
    id: str | None = field(default=None, compare=False)


@dataclass(frozen=True)
class CodeBlock:
    kind: ClassVar[BlockKind] = BlockKind.CODE_BLOCK
    code: str = ""
    language: str | None = None
    id: str | None = field(default=None, compare=False)


@dataclass(frozen=True)
class TableCell:
    kind: ClassVar[BlockKind] = BlockKind.TABLE_CELL
    children: tuple[Inline, ...] = ()
    header: bool = False
    id: str | None = field(default=None, compare=False)


@dataclass(frozen=True)
class TableRow:
    kind: ClassVar[BlockKind] = BlockKind.TABLE_ROW
    cells: tuple[TableCell, ...] = ()
    id: str | None = field(default=None, compare=False)


@dataclass(frozen=True)
class Table:
    kind: ClassVar[BlockKind] = BlockKind.TABLE
    rows: tuple[TableRow, ...] = ()
    id: str | None = field(default=None, compare=False)


Block = Union[
    Paragraph,
    Heading,
    Quote,
    ListItem,
    BulletedList,
    NumberedList,
    Rule,
    Image,
    Equation,
    CodeBlock,
    TableCell,
    TableRow,
    Table,
]

# Blocks whose children are inline content and can hold a text cursor
TEXT_BLOCKS = (Paragraph, Heading, Quote, ListItem, TableCell)


def paragraph(text: str) -> Paragraph:
    """Build a single-run paragraph."""
    return Paragraph(children=(InlineRun(text),) if text else ())


def heading(text: str, level: int = 3) -> Heading:
    return Heading(level=level, children=(InlineRun(text),) if text else ())


def merge_runs(inlines: Iterable[Inline]) -> tuple[Inline, ...]:
    """Merge adjacent runs that share marks and link, dropping empty runs."""
    merged: list[Inline] = []
    for node in inlines:
        if isinstance(node, InlineRun):
            if not node.text:
                continue
            previous = merged[-1] if merged else None
            if isinstance(previous, InlineRun) and previous.same_format(node):
                merged[-1] = replace(previous, text=previous.text + node.text)
                continue
        merged.append(node)
    return tuple(merged)


def inline_text(inlines: Iterable[Inline]) -> str:
    """Concatenated text of inline runs; equations contribute nothing."""
    return "".join(node.text for node in inlines if isinstance(node, InlineRun))


def plain_text(block: Block) -> str:
    """Plain text of a block, descending into containers."""
    if isinstance(block, ListItem):
        nested = [plain_text(child) for child in block.blocks]
        return "\n".join([inline_text(block.children), *nested]).strip("\n")
    if isinstance(block, TEXT_BLOCKS):
        return inline_text(block.children)
    if isinstance(block, (BulletedList, NumberedList)):
        return "\n".join(plain_text(item) for item in block.items)
    if isinstance(block, Table):
        return "\n".join(plain_text(row) for row in block.rows)
    if isinstance(block, TableRow):
        return " | ".join(plain_text(cell) for cell in block.cells)
    if isinstance(block, CodeBlock):
        return block.code
    if isinstance(block, Equation):
        return block.tex
    if isinstance(block, Image):
        return block.alt
    if isinstance(block, Rule):
        return ""
    raise TypeError(f"Unsupported block type: {type(block).__name__}")


# --- Serialization -----------------------------------------------------------


def inline_to_dict(node: Inline) -> dict:
    if isinstance(node, InlineEquation):
        return {"kind": "inline_equation", "tex": node.tex}
    data: dict = {"text": node.text}
    if node.marks:
        data["marks"] = sorted(node.marks)
    if node.href is not None:
        data["href"] = node.href
    return data


def block_to_dict(block: Block) -> dict:
    """JSON-friendly representation: kind, attributes, children."""
    attributes: dict = {}
    children: list[dict]

    if isinstance(block, Heading):
        attributes["level"] = block.level
    elif isinstance(block, Image):
        attributes.update(url=block.url, alt=block.alt)
    elif isinstance(block, Equation):
        attributes["tex"] = block.tex
    elif isinstance(block, CodeBlock):
        attributes["code"] = block.code
        if block.language:
            attributes["language"] = block.language
    elif isinstance(block, TableCell):
        attributes["header"] = block.header

    if isinstance(block, ListItem):
        children = [inline_to_dict(n) for n in block.children]
        children += [block_to_dict(b) for b in block.blocks]
    elif isinstance(block, TEXT_BLOCKS):
        children = [inline_to_dict(n) for n in block.children]
    elif isinstance(block, (BulletedList, NumberedList)):
        children = [block_to_dict(item) for item in block.items]
    elif isinstance(block, Table):
        children = [block_to_dict(row) for row in block.rows]
    elif isinstance(block, TableRow):
        children = [block_to_dict(cell) for cell in block.cells]
    elif isinstance(block, (Rule, Image, Equation, CodeBlock)):
        children = []
    else:
        raise TypeError(f"Unsupported block type: {type(block).__name__}")

    data = {"kind": str(block.kind), "attributes": attributes, "children": children}
    if block.id is not None:
        data = {"id": block.id, **data}
    return data


_MARK_WRAPPERS = (
    (Mark.CODE, "`"),
    (Mark.BOLD, "**"),
    (Mark.ITALIC, "_"),
    (Mark.STRIKETHROUGH, "~~"),
)


def inline_to_markdown(inlines: Iterable[Inline]) -> str:
    parts = []
    for node in merge_runs(inlines):
        if isinstance(node, InlineEquation):
            parts.append(f"${node.tex}$")
            continue
        text = node.text
        for mark, wrapper in _MARK_WRAPPERS:
            if mark in node.marks and text.strip():
                text = f"{wrapper}{text}{wrapper}"
        if node.href:
            text = f"[{text}]({node.href})"
        parts.append(text)
    return "".join(parts)


def to_markdown(block: Block, depth: int = 0) -> str:
    """Compact markdown rendering of a block, used to build prompts."""
    indent = "  " * depth
    if isinstance(block, Paragraph):
        return inline_to_markdown(block.children)
    if isinstance(block, Heading):
        return f"{'#' * block.level} {inline_to_markdown(block.children)}"
    if isinstance(block, Quote):
        return f"> {inline_to_markdown(block.children)}"
    if isinstance(block, (BulletedList, NumberedList)):
        lines = []
        for number, item in enumerate(block.items, start=1):
            bullet = f"{number}." if isinstance(block, NumberedList) else "-"
            lines.append(f"{indent}{bullet} {inline_to_markdown(item.children)}")
            lines.extend(to_markdown(nested, depth + 1) for nested in item.blocks)
        return "\n".join(lines)
    if isinstance(block, ListItem):
        return f"{indent}- {inline_to_markdown(block.children)}"
    if isinstance(block, Rule):
        return "---"
    if isinstance(block, Image):
        return f"![{block.alt}]({block.url})"
    if isinstance(block, Equation):
        return f"$$\n{block.tex}\n$$"
    if isinstance(block, CodeBlock):
        return f"```{block.language or ''}\n{block.code}\n```"
    if isinstance(block, Table):
        return "\n".join(to_markdown(row) for row in block.rows)
    if isinstance(block, TableRow):
        return "| " + " | ".join(to_markdown(cell) for cell in block.cells) + " |"
    if isinstance(block, TableCell):
        return inline_to_markdown(block.children)
    raise TypeError(f"Unsupported block type: {type(block).__name__}")


# --- Document ----------------------------------------------------------------


@dataclass(frozen=True)
class Cursor:
    """A caret position: character offset into a top-level block's text."""

    block_id: str
    offset: int


_WORD_EDGE = re.compile(r"\w")


def _insert_into_runs(children: tuple[Inline, ...], offset: int, text: str) -> tuple[Inline, ...]:
    """Insert text at a character offset, inheriting the preceding run's format."""
    result: list[Inline] = []
    position = 0
    inserted = False
    for node in children:
        if inserted or not isinstance(node, InlineRun):
            result.append(node)
            continue
        end = position + len(node.text)
        if offset <= end:
            cut = offset - position
            result.append(replace(node, text=node.text[:cut] + text + node.text[cut:]))
            inserted = True
        else:
            result.append(node)
        position = end
    if not inserted:
        result.append(InlineRun(text))
    return tuple(result)


class Document:
    """Ordered top-level blocks with stable identifiers.

    Readers get immutable blocks; the only mutations are ``insert_blocks``
    and ``insert_text``, each of which swaps in the new state in one step.
    """

    def __init__(self, blocks: Iterable[Block] = ()):
        self._blocks: dict[str, Block] = {}
        self._order: tuple[str, ...] = ()
        self._next_id = 1
        initial = list(blocks)
        if initial:
            self.insert_blocks(initial)

    def __len__(self) -> int:
        return len(self._order)

    def __iter__(self) -> Iterator[Block]:
        return (self._blocks[block_id] for block_id in self._order)

    def __contains__(self, block_id: object) -> bool:
        return block_id in self._blocks

    @property
    def blocks(self) -> list[Block]:
        return list(self)

    @property
    def block_ids(self) -> tuple[str, ...]:
        return self._order

    def get(self, block_id: str) -> Block:
        return self._blocks[block_id]

    def index_of(self, block_id: str) -> int:
        return self._order.index(block_id)

    def text_of(self, block_id: str) -> str:
        return plain_text(self._blocks[block_id])

    def _allocate_id(self) -> str:
        block_id = f"b{self._next_id}"
        self._next_id += 1
        return block_id

    def insert_blocks(self, blocks: Iterable[Block], after: str | None = None) -> list[str]:
        """Insert blocks as one batch, after ``after`` or at the end.

        Returns the identifiers assigned to the inserted blocks.
        """
        if after is not None and after not in self._blocks:
            raise KeyError(f"Unknown block id: {after}")

        staged = [replace(block, id=self._allocate_id()) for block in blocks]
        if not staged:
            return []

        position = len(self._order) if after is None else self._order.index(after) + 1
        new_ids = tuple(block.id for block in staged)
        new_blocks = dict(self._blocks)
        new_blocks.update((block.id, block) for block in staged)

        self._blocks, self._order = (
            new_blocks,
            self._order[:position] + new_ids + self._order[position:],
        )
        return list(new_ids)

    def insert_text(self, cursor: Cursor, text: str) -> Cursor:
        """Insert text at the cursor and return the cursor after it."""
        block = self._blocks[cursor.block_id]
        if not isinstance(block, (Paragraph, Heading, Quote)):
            raise TypeError(f"Cannot insert text into a {block.kind} block")

        current = inline_text(block.children)
        offset = max(0, min(cursor.offset, len(current)))
        updated = replace(block, children=_insert_into_runs(block.children, offset, text))

        new_blocks = dict(self._blocks)
        new_blocks[cursor.block_id] = updated
        self._blocks = new_blocks
        return Cursor(cursor.block_id, offset + len(text))

    def end_cursor(self, block_id: str) -> Cursor:
        return Cursor(block_id, len(self.text_of(block_id)))

    def to_dict(self) -> list[dict]:
        return [block_to_dict(block) for block in self]


def needs_separator(before: str, after: str) -> bool:
    """Whether two text fragments need a space to avoid fusing words."""
    if not before or not after:
        return False
    return bool(_WORD_EDGE.match(before[-1])) and bool(_WORD_EDGE.match(after[0]))
