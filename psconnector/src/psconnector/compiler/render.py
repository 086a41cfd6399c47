"""Serialize a descriptor element tree."""

import copy
import xml.etree.ElementTree as ET
from .constants import XML_DECLARATION


def render_descriptor(root: ET.Element, pretty: bool = True, indent: int = 2) -> str:
    """
    Serialize a descriptor tree to text.

    The compact and indented forms differ only in inter-element whitespace.
    The input tree is not modified.

    Args:
        root: Descriptor root element
        pretty: Indent nested elements when True
        indent: Spaces per nesting level in the indented form

    Returns:
        XML text starting with the XML declaration
    """
    tree = copy.deepcopy(root)
    if pretty:
        ET.indent(tree, space=" " * indent)
    body = ET.tostring(tree, encoding="unicode")
    separator = "\n" if pretty else ""
    return f"{XML_DECLARATION}{separator}{body}{separator}"
