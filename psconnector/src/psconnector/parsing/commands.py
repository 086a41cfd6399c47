"""Extract command signatures from PowerShell script text."""

import re
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Tuple
from psconnector.config.logging import get_logger
from psconnector.ir.command import Command, Parameter, UiType
from .constants import (
    AUTOMATIC_VARIABLES,
    BOOL_TYPES,
    DATETIME_TYPES,
    INT_TYPES,
    LOGGER_HELPER_FUNCTIONS,
)
from .scanner import Fragment, ScannedText

logger = get_logger(__name__)

FUNCTION_RE = re.compile(
    r"(?<![\w$-])function\s+(?:(?:global|script|local|private):)?([A-Za-z_][\w-]*)",
    re.IGNORECASE,
)
PARAM_RE = re.compile(r"(?<![\w$-])param\s*\(", re.IGNORECASE)
VARIABLE_RE = re.compile(r"\$([A-Za-z_]\w*)")
PARAMETER_ATTR_RE = re.compile(r"\[\s*Parameter\s*\(", re.IGNORECASE)
MANDATORY_RE = re.compile(r"\bMandatory\b(?:\s*=\s*(\$true|\$false|1|0))?", re.IGNORECASE)
SOURCE_MARKER_RE = re.compile(r"^Source\s*:\s*(Schema|Connection|Manual)\b", re.IGNORECASE)
KEY_MARKER_RE = re.compile(r"^Key\b", re.IGNORECASE)


@dataclass
class ParseDefect:
    """A declaration or parameter fragment that could not be decomposed."""

    line: int
    message: str
    text: str = ""


def map_ps_type(token: str) -> UiType:
    """
    Map a PowerShell type token to a UI scalar type.

    Args:
        token: Text inside the type brackets, e.g. "int", "System.String", "string[]"

    Returns:
        One of String, Int, Bool, DateTime
    """
    t = token.strip().lower()
    if t.startswith("system."):
        t = t[len("system."):]
    t = t.rstrip("[]").strip()
    if t in INT_TYPES:
        return "Int"
    if t in BOOL_TYPES:
        return "Bool"
    if t in DATETIME_TYPES:
        return "DateTime"
    return "String"


def read_markers(comments: Iterable[str]) -> Tuple[Optional[str], bool]:
    """Read '# Source: X' and '# Key' markers from comment texts."""
    origin = None
    is_key = False
    for comment in comments:
        body = comment
        if body.startswith("<#"):
            body = body[2:]
            if body.endswith("#>"):
                body = body[:-2]
        for part in body.split("#"):
            part = part.strip()
            m = SOURCE_MARKER_RE.match(part)
            if m:
                origin = m.group(1).capitalize()
            if KEY_MARKER_RE.match(part):
                is_key = True
    return origin, is_key


def _top_level_groups(code: str) -> List[Tuple[int, int]]:
    """(start, end) offsets, end inclusive, of every outermost bracket group."""
    groups = []
    depth = 0
    group_start = 0
    for i, c in enumerate(code):
        if c in "([{":
            if depth == 0:
                group_start = i
            depth += 1
        elif c in ")]}" and depth > 0:
            depth -= 1
            if depth == 0:
                groups.append((group_start, i))
    return groups


class CommandParser:
    """
    Parse `function [scope:]Verb-Noun { ... param(...) ... }` declarations.

    Defects found while parsing are collected on `defects` and never abort
    the parse. Functions listed in `ignored_names` are skipped.
    """

    def __init__(self, ignored_names: Iterable[str] = LOGGER_HELPER_FUNCTIONS):
        self.ignored_names = {n.lower() for n in ignored_names}
        self.defects: List[ParseDefect] = []

    def _defect(self, line: int, message: str, text: str = "") -> None:
        logger.warning(f"Line {line}: {message}")
        self.defects.append(ParseDefect(line=line, message=message, text=text.strip()))

    def parse(self, text: str) -> List[Command]:
        """
        Parse every function declaration in a script.

        Args:
            text: PowerShell script text

        Returns:
            Commands in declaration order
        """
        self.defects = []
        scanned = ScannedText(text)
        code = scanned.code
        commands: List[Command] = []
        pos = 0

        while True:
            m = FUNCTION_RE.search(code, pos)
            if m is None:
                break
            name = m.group(1)
            line = scanned.line_of(m.start())
            cursor = scanned.skip_blank(m.end())

            inline_params = None
            if cursor < len(code) and code[cursor] == "(":
                close = scanned.find_matching(cursor)
                if close is None:
                    self._defect(line, f"Unterminated parameter list for function '{name}'")
                    pos = m.end()
                    continue
                inline_params = (cursor + 1, close)
                cursor = scanned.skip_blank(close + 1)

            if cursor >= len(code) or code[cursor] != "{":
                self._defect(line, f"Function '{name}' has no body")
                pos = m.end()
                continue
            body_end = scanned.find_matching(cursor)
            if body_end is None:
                self._defect(line, f"Unterminated body for function '{name}'")
                pos = m.end()
                continue
            pos = body_end + 1

            if name.lower() in self.ignored_names:
                logger.debug(f"Skipping helper function {name}")
                continue

            if inline_params is not None:
                parameters = self._parse_block(scanned, inline_params[0], inline_params[1])
            else:
                parameters = self._parse_body_params(scanned, cursor + 1, body_end)

            commands.append(
                Command(
                    name=name,
                    parameters=parameters,
                    body=text[cursor + 1:body_end],
                    line=line,
                )
            )

        logger.info(f"Parsed {len(commands)} commands with {len(self.defects)} defects")
        return commands

    def parse_param_block(self, text: str) -> List[Parameter]:
        """
        Parse the first top-level `param(...)` block of a script fragment.

        Args:
            text: Script text such as an inline custom command

        Returns:
            Parameters in declaration order (empty if there is no block)
        """
        scanned = ScannedText(text)
        return self._parse_body_params(scanned, 0, len(text))

    def _parse_body_params(self, scanned: ScannedText, start: int, end: int) -> List[Parameter]:
        for m in PARAM_RE.finditer(scanned.code, start, end):
            if scanned.depth_between(start, m.start()) != 0:
                continue
            open_index = m.end() - 1
            close = scanned.find_matching(open_index)
            if close is None or close > end:
                self._defect(scanned.line_of(m.start()), "Unterminated param block")
                return []
            return self._parse_block(scanned, open_index + 1, close)
        return []

    def _parse_block(self, scanned: ScannedText, start: int, end: int) -> List[Parameter]:
        entries: List[Dict] = []
        by_name: Dict[str, Dict] = {}

        for frag in scanned.split_top_level(start, end):
            origin, is_key = read_markers(frag.comments)
            entry = self._parse_fragment(frag)

            if entry is None:
                if frag.code.strip():
                    self._defect(
                        scanned.line_of(frag.start),
                        "Could not read parameter declaration",
                        frag.text,
                    )
                elif entries and (origin or is_key):
                    # marker-only piece annotates the parameter before it
                    last = entries[-1]
                    last["origin"] = origin or last["origin"]
                    last["is_key"] = last["is_key"] or is_key
                continue

            entry["origin"] = origin
            entry["is_key"] = is_key
            existing = by_name.get(entry["name"].lower())
            if existing is not None:
                logger.debug(f"Merging duplicate parameter ${entry['name']}")
                existing["mandatory"] = existing["mandatory"] or entry["mandatory"]
                existing["has_default"] = existing["has_default"] or entry["has_default"]
                existing["origin"] = existing["origin"] or entry["origin"]
                existing["is_key"] = existing["is_key"] or entry["is_key"]
                continue
            by_name[entry["name"].lower()] = entry
            entries.append(entry)

        return [
            Parameter(
                name=e["name"],
                type=e["type"],
                mandatory=e["mandatory"],
                has_default=e["has_default"],
                origin=e["origin"] or "Manual",
                is_key=e["is_key"],
            )
            for e in entries
        ]

    def _parse_fragment(self, frag: Fragment) -> Optional[Dict]:
        code = frag.code
        groups = _top_level_groups(code)

        def inside_group(pos: int) -> bool:
            return any(s <= pos <= e for s, e in groups)

        name_match = None
        for m in VARIABLE_RE.finditer(code):
            if inside_group(m.start()) or m.group(1).lower() in AUTOMATIC_VARIABLES:
                continue
            name_match = m
            break
        if name_match is None:
            return None

        name_start = name_match.start()
        brackets = [(s, e) for s, e in groups if e < name_start and code[s] == "["]

        param_type: UiType = "String"
        if brackets:
            s, e = brackets[-1]
            inner = code[s + 1:e]
            if not code[e + 1:name_start].strip() and "(" not in inner:
                param_type = map_ps_type(inner)

        mandatory = False
        for s, e in brackets:
            if not PARAMETER_ATTR_RE.match(code, s):
                continue
            m = MANDATORY_RE.search(code, s, e + 1)
            if m:
                flag = (m.group(1) or "$true").lower()
                mandatory = flag in ("$true", "1")

        has_default = code[name_match.end():].lstrip().startswith("=")

        return {
            "name": name_match.group(1),
            "type": param_type,
            "mandatory": mandatory,
            "has_default": has_default,
        }


def parse_commands(text: str, ignored_names: Iterable[str] = LOGGER_HELPER_FUNCTIONS) -> List[Command]:
    """Parse a script with a fresh parser, discarding defects."""
    return CommandParser(ignored_names).parse(text)
