"""Recover source positions for parsed XML elements."""

import re
import xml.etree.ElementTree as ET
from bisect import bisect_right
from typing import Dict, List, Tuple

NAME_RE = re.compile(r"[A-Za-z_][\w.\-:]*")

# Markup skipped when looking for element start tags: (opener, terminator)
SKIPPED_MARKUP = (
    ("<!--", "-->"),
    ("<![CDATA[", "]]>"),
    ("<?", "?>"),
    ("<!", ">"),
)


def start_tags(text: str) -> List[Tuple[str, int]]:
    """
    Find every element start tag in document order.

    Args:
        text: XML document text

    Returns:
        (tag name, offset of '<') pairs, self-closing tags included
    """
    tags = []
    i = 0
    n = len(text)
    while True:
        i = text.find("<", i)
        if i == -1 or i + 1 >= n:
            break
        skipped = False
        for opener, terminator in SKIPPED_MARKUP:
            if text.startswith(opener, i):
                end = text.find(terminator, i + len(opener))
                i = n if end == -1 else end + len(terminator)
                skipped = True
                break
        if skipped:
            continue
        if text[i + 1] == "/":
            i += 2
            continue
        m = NAME_RE.match(text, i + 1)
        if m is None:
            i += 1
            continue
        tags.append((m.group(0), i))
        # skip to the end of the tag, honouring quoted attribute values
        j = m.end()
        quote = None
        while j < n:
            c = text[j]
            if quote:
                if c == quote:
                    quote = None
            elif c in "\"'":
                quote = c
            elif c == ">":
                break
            j += 1
        i = j + 1
    return tags


class ElementLocator:
    """Maps elements of a parsed tree back to line and column in the text."""

    def __init__(self, text: str, root: ET.Element):
        self._line_starts = [0] + [i + 1 for i, ch in enumerate(text) if ch == "\n"]
        self._offsets: Dict[int, int] = {}
        tags = start_tags(text)
        cursor = 0
        for element in root.iter():
            k = cursor
            while k < len(tags) and tags[k][0] != element.tag:
                k += 1
            if k == len(tags):
                break
            self._offsets[id(element)] = tags[k][1]
            cursor = k + 1

    def position(self, offset: int) -> Tuple[int, int]:
        """1-based (line, column) of a text offset."""
        line = bisect_right(self._line_starts, offset)
        return line, offset - self._line_starts[line - 1] + 1

    def locate(self, element: ET.Element) -> Tuple[int, int]:
        """1-based (line, column) of an element's start tag, or (0, 0) if unknown."""
        offset = self._offsets.get(id(element))
        if offset is None:
            return 0, 0
        return self.position(offset)
