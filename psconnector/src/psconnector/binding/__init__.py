"""Default bindings, chain resolution and authoring helpers."""

from .defaults import canonical_operation, find_default_command, singularize
from .resolver import BindingGap, BindingResolver, ResolvedEntity, ResolvedItem
from .seeding import build_command_stub, seed_connection_globals

__all__ = [
    "canonical_operation",
    "find_default_command",
    "singularize",
    "BindingGap",
    "BindingResolver",
    "ResolvedEntity",
    "ResolvedItem",
    "build_command_stub",
    "seed_connection_globals",
]
