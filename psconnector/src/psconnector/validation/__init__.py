"""Descriptor consistency validation."""

from .locator import ElementLocator, start_tags
from .validator import DescriptorValidator, Issue, ValidationReport, validate_descriptor

__all__ = [
    "ElementLocator",
    "start_tags",
    "DescriptorValidator",
    "Issue",
    "ValidationReport",
    "validate_descriptor",
]
