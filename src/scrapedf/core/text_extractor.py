"""
HTML Text Extraction Module

This module turns a parsed HTML document into readable plain text. The
document is walked once, depth first, and every text node is formatted
according to the tag of the element that directly contains it:
paragraphs and headings are separated by blank lines, list items get a
bullet, and inline runs are joined with single spaces.
"""

import logging
from enum import Enum
from typing import List, Optional, Union

from bs4 import BeautifulSoup, Comment, NavigableString, Tag
from bs4.element import PreformattedString


# Elements dropped together with everything below them
SUPPRESSED_TAGS = frozenset({"script", "style", "meta", "link", "noscript"})

# Inline styling elements that are walked through as if absent
INLINE_STYLING_TAGS = frozenset({
    "strong", "b", "em", "i", "u", "span", "mark", "small", "sub", "sup", "code",
})

HEADING_TAGS = frozenset({"h1", "h2", "h3", "h4", "h5", "h6"})

BULLET = "• "


class ExtractionError(Exception):
    """Raised when raw HTML cannot be parsed into a document tree."""


class FormatRule(Enum):
    """How a text node is emitted, chosen from the tag of its parent."""

    PARAGRAPH = "paragraph"
    LIST_ITEM = "list_item"
    HEADING = "heading"
    ANCHOR = "anchor"
    DEFAULT = "default"


_PARENT_RULES = {
    "p": FormatRule.PARAGRAPH,
    "li": FormatRule.LIST_ITEM,
    "a": FormatRule.ANCHOR,
}
_PARENT_RULES.update({tag: FormatRule.HEADING for tag in HEADING_TAGS})


def rule_for_parent(tag_name: Optional[str]) -> FormatRule:
    """
    Look up the formatting rule for text directly inside ``tag_name``.

    Args:
        tag_name: Name of the parent element, or None when there is no parent

    Returns:
        The matching FormatRule; DEFAULT for any tag without a dedicated rule
    """
    if tag_name is None:
        return FormatRule.DEFAULT
    return _PARENT_RULES.get(tag_name, FormatRule.DEFAULT)


def normalize_output(text: str) -> str:
    """
    Finalize the raw walk output.

    Triple newlines collapse to double ones, surrounding whitespace is
    removed and non-empty text is terminated by exactly two newlines.
    """
    text = text.replace("\n\n\n", "\n\n")
    text = text.strip()
    if text and not text.endswith("\n\n"):
        if text.endswith("\n"):
            text += "\n"
        else:
            text += "\n\n"
    return text


class TextExtractor:
    """
    Extracts formatted plain text from a BeautifulSoup document tree.

    Walk state is reset at the start of every ``extract`` call, so a single
    instance can be reused for any number of documents.
    """

    def __init__(self):
        self.logger = logging.getLogger(__name__)
        self._parts: List[str] = []
        self._last_was_block = False
        self._last_was_text = False

    def extract(self, tree: Union[Tag, NavigableString]) -> str:
        """
        Extract readable text from an already parsed document.

        Args:
            tree: Document, element or text node to walk

        Returns:
            Normalized text, or an empty string when nothing readable was found
        """
        self._parts = []
        self._last_was_block = False
        self._last_was_text = False

        self._visit(tree)

        content = normalize_output("".join(self._parts))
        self._parts = []
        return content

    def _visit(self, node) -> None:
        if isinstance(node, Comment):
            return

        if isinstance(node, PreformattedString):
            # doctype, CDATA, processing instructions and declarations
            return

        if isinstance(node, NavigableString):
            self._emit_text(node)
            return

        if not isinstance(node, Tag):
            return

        if node.name in SUPPRESSED_TAGS:
            return

        for child in node.children:
            self._visit(child)

    def _emit_text(self, node: NavigableString) -> None:
        parent = node.parent

        if parent is not None and parent.name in INLINE_STYLING_TAGS:
            text = str(node).rstrip()
        else:
            text = str(node).strip()

        if not text:
            return

        if parent is None:
            if self._last_was_text:
                self._parts.append(" ")
            self._parts.append(text)
            self._last_was_text = True
            return

        rule = rule_for_parent(parent.name)

        if rule is FormatRule.PARAGRAPH:
            self._parts.append(text)
            self._parts.append("\n\n")
            self._last_was_block = True
            self._last_was_text = False

        elif rule is FormatRule.LIST_ITEM:
            self._parts.append(BULLET)
            self._parts.append(text)
            self._parts.append("\n")
            self._last_was_block = False
            self._last_was_text = False

        elif rule is FormatRule.HEADING:
            if not self._last_was_block:
                self._parts.append("\n")
            self._parts.append(text)
            self._parts.append("\n\n")
            self._last_was_block = True
            self._last_was_text = False

        elif rule is FormatRule.ANCHOR:
            if self._last_was_text:
                self._parts.append("\n")
            self._parts.append(text)
            if self._closes_nav_block(parent):
                self._parts.append("\n")
            self._last_was_block = False
            self._last_was_text = True

        else:
            if self._last_was_text:
                self._parts.append(" ")
            self._parts.append(text)
            self._last_was_block = False
            self._last_was_text = True

    @staticmethod
    def _closes_nav_block(anchor: Tag) -> bool:
        # last node inside a <nav>, whitespace siblings included
        container = anchor.parent
        return (
            container is not None
            and container.name == "nav"
            and anchor.next_sibling is None
        )


def parse_html(html: Union[str, bytes]) -> BeautifulSoup:
    """
    Parse raw HTML into a document tree.

    Raises:
        ExtractionError: If the parser rejects the markup
    """
    try:
        return BeautifulSoup(html, "lxml")
    except Exception as e:
        raise ExtractionError(f"failed to parse HTML: {e}") from e


def extract_text(tree: Union[Tag, NavigableString]) -> str:
    """Extract text from a parsed tree with a fresh extractor."""
    return TextExtractor().extract(tree)


def strip_html(html: Union[str, bytes]) -> str:
    """
    Parse ``html`` and return its readable text.

    Args:
        html: Raw page markup

    Returns:
        Extracted text, terminated by two newlines when non-empty

    Raises:
        ExtractionError: If the markup could not be parsed
    """
    return extract_text(parse_html(html))
