"""Infer the fields a command returns from the objects its body constructs."""

import re
from typing import Dict, Optional
from psconnector.config.logging import get_logger
from psconnector.ir.command import InferredType
from .scanner import ScannedText

logger = get_logger(__name__)

SITE_RE = re.compile(
    r"\[\s*pscustomobject\s*\]\s*@\{"
    r"|New-Object\s+(?:-TypeName\s+)?PSObject\s+-Property\s+@\{",
    re.IGNORECASE,
)
KEY_RE = re.compile(r"^\s*(?:'([^']*)'|\"([^\"]*)\"|([A-Za-z_][\w-]*))\s*$")
BOOL_RE = re.compile(r"^\$(true|false)$", re.IGNORECASE)
INT_RE = re.compile(r"^[+-]?\d+$")
SINGLE_QUOTED_RE = re.compile(r"^'(?:[^']|'')*'$")
DOUBLE_QUOTED_RE = re.compile(r'^"(?:[^"`]|`.|"")*"$', re.DOTALL)
DATETIME_RE = re.compile(
    r"^\(?\s*(?:Get-Date\b"
    r"|\[(?:System\.)?DateTime\]\s*::\s*(?:UtcNow|Now|Parse|ParseExact)\b"
    r"|\[(?:System\.)?DateTime\](?!\s*::))",
    re.IGNORECASE,
)

ReturnShape = Dict[str, InferredType]


def classify_expression(expr: str) -> InferredType:
    """
    Guess the scalar type of a PowerShell value expression.

    Args:
        expr: Right-hand side of a hashtable entry

    Returns:
        Bool, String, Int, DateTime, or Unknown when nothing matches
    """
    e = expr.strip()
    if BOOL_RE.match(e):
        return "Bool"
    if SINGLE_QUOTED_RE.match(e) or DOUBLE_QUOTED_RE.match(e):
        return "String"
    if INT_RE.match(e):
        return "Int"
    if DATETIME_RE.match(e):
        return "DateTime"
    return "Unknown"


def infer_return_shape(body: str) -> Optional[ReturnShape]:
    """
    Infer a command's result fields from its object construction sites.

    Sites are `[pscustomobject]@{...}` and `New-Object PSObject -Property @{...}`.
    The first assignment of each key wins across all sites.

    Args:
        body: Command body text

    Returns:
        Field name to inferred type, or None when the body constructs no
        object (the shape is then unverifiable, not empty)
    """
    scanned = ScannedText(body)
    shape: ReturnShape = {}
    found_site = False

    for m in SITE_RE.finditer(scanned.code):
        open_index = m.end() - 1
        close = scanned.find_matching(open_index)
        if close is None:
            logger.debug(f"Unterminated object literal at line {scanned.line_of(m.start())}")
            continue
        found_site = True
        for start, end in scanned.split_statements(open_index + 1, close):
            eq = scanned.code.find("=", start, end)
            if eq == -1:
                continue
            key_match = KEY_RE.match(body[start:eq])
            if key_match is None:
                continue
            key = next(g for g in key_match.groups() if g is not None)
            if not key or key.lower() in (k.lower() for k in shape):
                continue
            shape[key] = classify_expression(scanned.text_without_comments(eq + 1, end))

    if not found_site:
        return None
    return shape


def find_field(shape: ReturnShape, path: str) -> Optional[str]:
    """Name of the shape field matching path, ignoring case."""
    wanted = path.lower()
    for key in shape:
        if key.lower() == wanted:
            return key
    return None
