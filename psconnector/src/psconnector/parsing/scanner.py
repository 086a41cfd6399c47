"""Quote- and comment-aware scanning of PowerShell script text.

The scanner walks the text once and records every string literal and
comment as a span. Structural searches (keywords, brackets, separators)
then run over a masked copy of the text in which those spans are blanked
out, so offsets in the masked copy line up one-to-one with the original.
"""

from bisect import bisect_right
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

OPENERS = "([{"
CLOSERS = ")]}"

# Characters after which '#' starts a comment rather than continuing a word
COMMENT_LEADERS = " \t\r\n(){}[];,=|&"


@dataclass
class Span:
    """A string literal or comment inside the scanned text."""

    kind: str  # "string" or "comment"
    start: int
    end: int  # exclusive


@dataclass
class Fragment:
    """One top-level piece of a separated list (e.g. a parameter declaration)."""

    start: int
    end: int
    text: str
    code: str  # same piece with literals and comments blanked
    comments: List[str] = field(default_factory=list)


class ScannedText:
    """Script text with its literal/comment spans resolved."""

    def __init__(self, text: str):
        self.text = text
        self.spans: List[Span] = []
        self.code = self._scan()
        self._spans_by_start: Dict[int, Span] = {s.start: s for s in self.spans}
        self._line_starts = [0] + [i + 1 for i, ch in enumerate(text) if ch == "\n"]

    def _scan(self) -> str:
        text = self.text
        n = len(text)
        out = list(text)
        i = 0

        def mark(kind: str, start: int, end: int) -> None:
            self.spans.append(Span(kind, start, end))
            for k in range(start, end):
                out[k] = " "

        while i < n:
            ch = text[i]
            if text.startswith("<#", i):
                close = text.find("#>", i + 2)
                end = n if close == -1 else close + 2
                mark("comment", i, end)
                i = end
            elif ch == "#" and (i == 0 or text[i - 1] in COMMENT_LEADERS):
                close = text.find("\n", i)
                end = n if close == -1 else close
                mark("comment", i, end)
                i = end
            elif ch == "@" and i + 1 < n and text[i + 1] in "\"'":
                # here-string: terminator sits at the start of a line
                quote = text[i + 1]
                close = text.find("\n" + quote + "@", i + 2)
                end = n if close == -1 else close + 3
                mark("string", i, end)
                i = end
            elif ch == '"':
                end = self._string_end(i, escapes=True)
                mark("string", i, end)
                i = end
            elif ch == "'":
                end = self._string_end(i, escapes=False)
                mark("string", i, end)
                i = end
            elif ch == "`":
                # escaped character (or line continuation) in code
                for k in range(i, min(i + 2, n)):
                    out[k] = " "
                i += 2
            else:
                i += 1
        return "".join(out)

    def _string_end(self, start: int, escapes: bool) -> int:
        text = self.text
        quote = text[start]
        j = start + 1
        while j < len(text):
            c = text[j]
            if escapes and c == "`":
                j += 2
                continue
            if c == quote:
                if j + 1 < len(text) and text[j + 1] == quote:
                    j += 2
                    continue
                return j + 1
            j += 1
        return len(text)

    def line_of(self, offset: int) -> int:
        """1-based line number of an offset."""
        return bisect_right(self._line_starts, offset)

    def column_of(self, offset: int) -> int:
        """1-based column number of an offset."""
        return offset - self._line_starts[self.line_of(offset) - 1] + 1

    def find_matching(self, open_index: int) -> Optional[int]:
        """
        Find the bracket closing the one at open_index.

        Args:
            open_index: Offset of an opening (, [ or {

        Returns:
            Offset of the matching closer, or None if the text ends first
        """
        depth = 0
        for i in range(open_index, len(self.code)):
            c = self.code[i]
            if c in OPENERS:
                depth += 1
            elif c in CLOSERS:
                depth -= 1
                if depth == 0:
                    return i
        return None

    def depth_between(self, start: int, end: int) -> int:
        """Bracket nesting depth at end, counted from start."""
        depth = 0
        for c in self.code[start:end]:
            if c in OPENERS:
                depth += 1
            elif c in CLOSERS:
                depth = max(depth - 1, 0)
        return depth

    def skip_blank(self, pos: int) -> int:
        """First offset at or after pos holding a non-whitespace code character."""
        while pos < len(self.code) and self.code[pos].isspace():
            pos += 1
        return pos

    def comments_in(self, start: int, end: int) -> List[str]:
        return [
            self.text[s.start:s.end]
            for s in self.spans
            if s.kind == "comment" and s.start >= start and s.end <= end
        ]

    def fragment(self, start: int, end: int, extra: Optional[List[Span]] = None) -> Fragment:
        comments = self.comments_in(start, end)
        for span in extra or []:
            comments.append(self.text[span.start:span.end])
        return Fragment(
            start=start,
            end=end,
            text=self.text[start:end],
            code=self.code[start:end],
            comments=comments,
        )

    def _same_line_comment(self, pos: int, limit: int) -> Optional[Span]:
        while pos < limit and self.text[pos] in " \t":
            pos += 1
        span = self._spans_by_start.get(pos)
        if span is not None and span.kind == "comment" and span.end <= limit:
            return span
        return None

    def split_top_level(self, start: int, end: int, separator: str = ",") -> List[Fragment]:
        """
        Split code between start and end on separators outside any brackets.

        A comment starting on the same line right after a separator belongs
        to the piece before the separator. The piece after the last separator
        is included. Pieces holding neither code nor comments are dropped.

        Args:
            start: Offset of the first character to split
            end: Offset one past the last character
            separator: Separator character

        Returns:
            List of Fragment objects in text order
        """
        pieces: List[Fragment] = []
        depth = 0
        piece_start = start
        i = start
        while i < end:
            c = self.code[i]
            if c in OPENERS:
                depth += 1
            elif c in CLOSERS:
                depth = max(depth - 1, 0)
            elif c == separator and depth == 0:
                trailing = self._same_line_comment(i + 1, end)
                if trailing is not None:
                    pieces.append(self.fragment(piece_start, i, [trailing]))
                    piece_start = trailing.end
                    i = trailing.end
                    continue
                pieces.append(self.fragment(piece_start, i))
                piece_start = i + 1
            i += 1
        pieces.append(self.fragment(piece_start, end))
        return [p for p in pieces if p.code.strip() or p.comments]

    def split_statements(self, start: int, end: int) -> List[Tuple[int, int]]:
        """Split code on top-level newlines and semicolons into (start, end) ranges."""
        ranges: List[Tuple[int, int]] = []
        depth = 0
        piece_start = start
        for i in range(start, end):
            c = self.code[i]
            if c in OPENERS:
                depth += 1
            elif c in CLOSERS:
                depth = max(depth - 1, 0)
            elif c in "\n;" and depth == 0:
                ranges.append((piece_start, i))
                piece_start = i + 1
        ranges.append((piece_start, end))
        return [(s, e) for s, e in ranges if self.code[s:e].strip()]

    def text_without_comments(self, start: int, end: int) -> str:
        """Original text between start and end with comment spans removed."""
        parts = []
        pos = start
        for span in self.spans:
            if span.kind != "comment" or span.end <= start or span.start >= end:
                continue
            parts.append(self.text[pos:max(span.start, pos)])
            pos = max(pos, span.end)
        if pos < end:
            parts.append(self.text[pos:end])
        return "".join(parts)
