"""Markup / plain text to block tree conversion."""

import html
import logging
import re

from bs4 import BeautifulSoup, NavigableString, Tag
from bs4.element import PreformattedString

from lectern.services.document.blocks import (
    Block,
    BulletedList,
    CodeBlock,
    Equation,
    Heading,
    Image,
    Inline,
    InlineEquation,
    InlineRun,
    ListItem,
    Mark,
    NumberedList,
    Paragraph,
    Quote,
    Rule,
    Table,
    TableCell,
    TableRow,
    inline_text,
    merge_runs,
)

logger = logging.getLogger(__name__)

MARKUP_PATTERN = re.compile(
    r"<\s*/?\s*(p|h[1-6]|ul|ol|li|blockquote|table|tr|td|th|div|span|br|hr|img|"
    r"strong|em|b|i|u|a|pre|code|section|article|figure|html|body)\b[^>]*>",
    re.IGNORECASE,
)
CODE_FENCE_PATTERN = re.compile(r"^```[\w-]*[ \t]*\n(.*?)\n?```\s*$", re.DOTALL)
INLINE_LATEX_PATTERN = re.compile(r"\$([^$\n]+)\$")
MARKDOWN_HEADING_PATTERN = re.compile(r"^(#{1,3}) (.+)$")
WHITESPACE_PATTERN = re.compile(r"\s+")


def is_markup(text: str) -> bool:
    """Whether the text contains at least one recognised HTML tag."""
    return bool(MARKUP_PATTERN.search(text))


def _block_equation(text: str) -> str | None:
    stripped = text.strip()
    if len(stripped) > 4 and stripped.startswith("$$") and stripped.endswith("$$"):
        return stripped[2:-2].strip()
    return None


UNSAFE_SCHEMES = ("javascript:", "vbscript:")
# Browsers ignore ASCII whitespace and C0 controls when reading a URL scheme
IGNORED_URL_CHARS = re.compile(r"[\x00-\x20\x7f]")


def _safe_url(url: str | None) -> str:
    url = (url or "").strip()
    scheme_view = IGNORED_URL_CHARS.sub("", url).lower()
    if scheme_view.startswith(UNSAFE_SCHEMES):
        return ""
    return url


class BlockTreeConverter:
    """Deserialize HTML-ish markup or plain text into blocks.

    Conversion is deterministic and never raises for bad input: markup the
    parser cannot handle degrades to one paragraph per line of text.
    """

    HEADING_TAGS = {"h1", "h2", "h3", "h4", "h5", "h6"}
    UNSAFE_TAGS = ["script", "style", "iframe", "object", "embed", "noscript", "template"]
    CONTAINER_TAGS = {"html", "body", "div", "section", "article", "figure", "main", "header", "footer"}
    INLINE_TAGS = {
        "a", "b", "strong", "i", "em", "u", "s", "strike", "del",
        "sup", "sub", "span", "br", "code", "mark", "small", "label",
    }
    BLOCKISH_TAGS = {"p", "div", "li", "blockquote", "tr"} | HEADING_TAGS
    MARK_TAGS = {
        "b": Mark.BOLD,
        "strong": Mark.BOLD,
        "i": Mark.ITALIC,
        "em": Mark.ITALIC,
        "u": Mark.UNDERLINE,
        "s": Mark.STRIKETHROUGH,
        "strike": Mark.STRIKETHROUGH,
        "del": Mark.STRIKETHROUGH,
        "sup": Mark.SUPERSCRIPT,
        "sub": Mark.SUBSCRIPT,
        "code": Mark.CODE,
    }

    def to_blocks(self, markup_or_text: str) -> list[Block]:
        """Convert markup if any recognised tag is present, otherwise plain text."""
        content = (markup_or_text or "").strip()
        if not content:
            return []
        content = self._strip_code_fence(content)
        if is_markup(content):
            return self.from_html(content)
        return self.from_text(content)

    def from_text(self, text: str) -> list[Block]:
        """One paragraph per non-empty line; ``$$...$$`` lines become equations."""
        blocks: list[Block] = []
        for line in text.splitlines():
            stripped = line.strip()
            if not stripped:
                continue

            tex = _block_equation(stripped)
            if tex is not None:
                blocks.append(Equation(tex=tex))
                continue

            heading = MARKDOWN_HEADING_PATTERN.match(stripped)
            if heading:
                level = len(heading.group(1))
                blocks.append(Heading(level=level, children=(InlineRun(heading.group(2).strip()),)))
                continue

            blocks.append(Paragraph(children=(InlineRun(stripped),)))
        return blocks

    def from_html(self, markup: str) -> list[Block]:
        """Convert HTML markup; unsafe elements and event handlers are removed."""
        try:
            soup = BeautifulSoup(markup, "lxml")
            self._sanitize(soup)
            root = soup.body or soup
            return self._convert_children(root)
        except Exception as e:
            logger.warning(f"Markup conversion failed, falling back to paragraphs: {e}")
            return self._fallback_blocks(markup)

    def _strip_code_fence(self, content: str) -> str:
        match = CODE_FENCE_PATTERN.match(content)
        return match.group(1).strip() if match else content

    def _sanitize(self, soup: BeautifulSoup) -> None:
        for element in soup.find_all(self.UNSAFE_TAGS):
            element.decompose()
        for element in soup.find_all(True):
            for attr in list(element.attrs):
                if attr.lower().startswith("on"):
                    del element.attrs[attr]

    def _fallback_blocks(self, markup: str) -> list[Block]:
        without_unsafe = re.sub(
            r"<(script|style)\b.*?</\1\s*>", "", markup, flags=re.IGNORECASE | re.DOTALL
        )
        text = html.unescape(re.sub(r"<[^>]*>", "\n", without_unsafe))
        return self.from_text(text)

    # --- Block level -----------------------------------------------------

    def _convert_children(self, element: Tag) -> list[Block]:
        """Convert the children of a container, wrapping loose inline content."""
        blocks: list[Block] = []
        loose: list[Inline] = []

        def flush() -> None:
            if loose:
                blocks.extend(self._paragraph_from_inlines(loose))
                loose.clear()

        for child in element.children:
            if isinstance(child, PreformattedString):
                continue
            if isinstance(child, NavigableString):
                loose.extend(self._text_runs(str(child), frozenset(), None))
                continue
            if not isinstance(child, Tag):
                continue

            name = (child.name or "").lower()
            # Multi-line code directly under a container is a code block
            is_code_block = name == "code" and "\n" in child.get_text().strip()
            if name in self.INLINE_TAGS and not is_code_block:
                loose.extend(self._inlines(child, frozenset(), None, name))
                continue

            flush()
            blocks.extend(self._convert_block(child, name))

        flush()
        return blocks

    def _convert_block(self, element: Tag, name: str) -> list[Block]:
        if name in self.HEADING_TAGS:
            children = self._inline_content(element)
            return [Heading(level=int(name[1]), children=children)] if children else []

        if name == "p":
            tex = _block_equation(element.get_text())
            if tex is not None:
                return [Equation(tex=tex)]
            children = self._inline_content(element)
            return [Paragraph(children=children)] if children else []

        if name == "blockquote":
            children = self._inline_content(element)
            return [Quote(children=children)] if children else []

        if name in ("pre", "code"):
            return [self._code_block(element)]

        if name in ("ul", "ol"):
            return [self._list(element, name)]

        if name == "li":
            return [BulletedList(items=(self._list_item(element),))]

        if name == "table":
            table = self._table(element)
            return [table] if table.rows else []

        if name == "hr":
            return [Rule()]

        if name == "img":
            url = _safe_url(element.get("src"))
            if not url:
                return []
            return [Image(url=url, alt=element.get("alt", "") or "")]

        if name == "figcaption":
            children = self._inline_content(element)
            return [Paragraph(children=children)] if children else []

        if name in self.CONTAINER_TAGS:
            return self._convert_children(element)

        # Unknown element: keep its content
        if element.find(["p", "div", "ul", "ol", "table", "blockquote", *self.HEADING_TAGS]):
            return self._convert_children(element)
        children = self._inline_content(element)
        return [Paragraph(children=children)] if children else []

    def _paragraph_from_inlines(self, inlines: list[Inline]) -> list[Block]:
        children = self._trim(inlines)
        if not children:
            return []
        tex = _block_equation(inline_text(children)) if all(
            isinstance(node, InlineRun) for node in children
        ) else None
        if tex is not None:
            return [Equation(tex=tex)]
        return [Paragraph(children=children)]

    def _code_block(self, element: Tag) -> CodeBlock:
        code_tag = element.find("code") if element.name == "pre" else element
        language = None
        if isinstance(code_tag, Tag):
            for css_class in code_tag.get("class", []) or []:
                if css_class.startswith("language-"):
                    language = css_class[len("language-"):]
                    break
        return CodeBlock(code=element.get_text().strip("\n"), language=language)

    def _list(self, element: Tag, name: str) -> Block:
        items = tuple(
            self._list_item(li) for li in element.find_all("li", recursive=False)
        )
        if name == "ol":
            return NumberedList(items=items)
        return BulletedList(items=items)

    def _list_item(self, element: Tag) -> ListItem:
        inlines: list[Inline] = []
        nested: list[Block] = []
        for child in element.children:
            if isinstance(child, PreformattedString):
                continue
            if isinstance(child, NavigableString):
                inlines.extend(self._text_runs(str(child), frozenset(), None))
            elif isinstance(child, Tag):
                name = (child.name or "").lower()
                if name in ("ul", "ol"):
                    nested.append(self._list(child, name))
                else:
                    inlines.extend(self._inlines(child, frozenset(), None, name))
        return ListItem(children=self._trim(inlines), blocks=tuple(nested))

    def _table(self, element: Tag) -> Table:
        rows = []
        for tr in element.find_all("tr"):
            cells = tuple(
                TableCell(
                    children=self._inline_content(cell),
                    header=(cell.name or "").lower() == "th",
                )
                for cell in tr.find_all(["td", "th"], recursive=False)
            )
            if cells:
                rows.append(TableRow(cells=cells))
        return Table(rows=tuple(rows))

    # --- Inline level ----------------------------------------------------

    def _inline_content(self, element: Tag) -> tuple[Inline, ...]:
        inlines: list[Inline] = []
        for child in element.children:
            inlines.extend(self._node_inlines(child, frozenset(), None))
        return self._trim(inlines)

    def _node_inlines(self, node, marks: frozenset[Mark], href: str | None) -> list[Inline]:
        if isinstance(node, PreformattedString):
            return []
        if isinstance(node, NavigableString):
            return self._text_runs(str(node), marks, href)
        if isinstance(node, Tag):
            return self._inlines(node, marks, href, (node.name or "").lower())
        return []

    def _inlines(
        self, element: Tag, marks: frozenset[Mark], href: str | None, name: str
    ) -> list[Inline]:
        if name == "br":
            return [InlineRun("\n", marks, href)]
        if name == "img":
            return []

        if name in self.MARK_TAGS:
            marks = marks | {self.MARK_TAGS[name]}
        elif name == "a":
            href = _safe_url(element.get("href")) or href

        inlines: list[Inline] = []
        for child in element.children:
            inlines.extend(self._node_inlines(child, marks, href))

        if name in self.BLOCKISH_TAGS and inlines:
            inlines.append(InlineRun("\n", marks, href))
        return inlines

    def _text_runs(self, text: str, marks: frozenset[Mark], href: str | None) -> list[Inline]:
        text = WHITESPACE_PATTERN.sub(" ", text)
        if not text:
            return []

        runs: list[Inline] = []
        last_index = 0
        for match in INLINE_LATEX_PATTERN.finditer(text):
            if match.start() > last_index:
                runs.append(InlineRun(text[last_index:match.start()], marks, href))
            runs.append(InlineEquation(tex=match.group(1).strip()))
            last_index = match.end()
        if last_index < len(text):
            runs.append(InlineRun(text[last_index:], marks, href))
        return runs

    def _trim(self, inlines: list[Inline]) -> tuple[Inline, ...]:
        """Merge runs, collapse spaces around line breaks and trim the edges."""
        merged = list(merge_runs(inlines))

        while merged and isinstance(merged[0], InlineRun) and not merged[0].text.strip():
            merged.pop(0)
        while merged and isinstance(merged[-1], InlineRun) and not merged[-1].text.strip():
            merged.pop()
        if not merged:
            return ()

        first, last = merged[0], merged[-1]
        if isinstance(first, InlineRun):
            merged[0] = InlineRun(first.text.lstrip(), first.marks, first.href)
        last = merged[-1]
        if isinstance(last, InlineRun):
            merged[-1] = InlineRun(last.text.rstrip(), last.marks, last.href)

        cleaned = []
        for node in merged:
            if isinstance(node, InlineRun) and "\n" in node.text:
                node = InlineRun(re.sub(r" *\n+ *", "\n", node.text), node.marks, node.href)
            cleaned.append(node)
        return merge_runs(cleaned)


_default_converter = BlockTreeConverter()


def to_blocks(markup_or_text: str) -> list[Block]:
    """Convert markup or plain text with the shared converter."""
    return _default_converter.to_blocks(markup_or_text)
