"""Default command selection by verb synonym and singularized noun."""

import re
from typing import List, Optional
from psconnector.ir.command import Command
from .constants import VERB_SYNONYMS

SINGULAR_ES_RE = re.compile(r"(ses|xes|zes|ches|shes)$", re.IGNORECASE)


def singularize(noun: str) -> str:
    """
    Reduce an English plural noun to its singular form.

    Handles the regular endings only: -ies, -ses/-xes/-zes/-ches/-shes, -s.
    """
    lower = noun.lower()
    if lower.endswith("ies") and len(noun) > 3:
        return noun[:-3] + "y"
    if SINGULAR_ES_RE.search(noun):
        return noun[:-2]
    if lower.endswith("s") and not lower.endswith("ss") and len(noun) > 1:
        return noun[:-1]
    return noun


def canonical_operation(verb: str) -> Optional[str]:
    """Operation whose synonym set contains verb, ignoring case."""
    lower = verb.lower()
    for operation, verbs in VERB_SYNONYMS.items():
        if lower in (v.lower() for v in verbs):
            return operation
    return None


def noun_stems(noun: str) -> List[str]:
    """
    Candidate singular forms of a command noun, the noun itself first.

    An -es ending is ambiguous (Boxes, Databases), so both the -es and the
    plain -s stem are offered.
    """
    stems = [noun, singularize(noun)]
    lower = noun.lower()
    if lower.endswith("es") and not lower.endswith("ss"):
        stems.append(noun[:-1])
    return stems


def noun_matches(noun: str, entity_name: str) -> bool:
    """True when the command noun names the entity, singular or plural."""
    wanted = entity_name.lower()
    return any(stem.lower() == wanted for stem in noun_stems(noun))


def find_default_command(entity_name: str, operation: str, commands: List[Command]) -> Optional[Command]:
    """
    Pick the command implementing an entity operation when no chain is declared.

    The first command in declaration order whose verb is a synonym of the
    operation and whose singularized noun equals the entity name wins.

    Args:
        entity_name: Entity name
        operation: One of List, View, Insert, Update, Delete
        commands: Parsed commands in declaration order

    Returns:
        The matching Command, or None
    """
    verbs = {v.lower() for v in VERB_SYNONYMS.get(operation, ())}
    if not verbs:
        return None
    for command in commands:
        if command.verb is None or command.noun is None:
            continue
        if command.verb.lower() in verbs and noun_matches(command.noun, entity_name):
            return command
    return None
