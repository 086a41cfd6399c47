"""Authoring helpers: command stubs for entity operations and seeded globals."""

import re
from typing import List, Optional
from psconnector.config.logging import get_logger
from psconnector.ir.bindings import ConnectionParameterGlobal, GlobalParameter
from psconnector.ir.command import Command
from psconnector.ir.schema import Entity
from .constants import SEEDED_GLOBAL_DESCRIPTION, SENSITIVE_NAME_PATTERN
from .defaults import canonical_operation, noun_matches

logger = get_logger(__name__)

SENSITIVE_RE = re.compile(SENSITIVE_NAME_PATTERN, re.IGNORECASE)

PS_TYPE_NAMES = {
    "String": "string",
    "Int": "int",
    "Bool": "bool",
    "DateTime": "datetime",
}

MANDATORY_ATTRIBUTES = (
    "[Parameter(Mandatory=$true, ValueFromPipelineByPropertyName = $true)] [ValidateNotNullOrEmpty()]"
)
OPTIONAL_ATTRIBUTES = "[Parameter(Mandatory=$false, ValueFromPipelineByPropertyName = $true)]"


def looks_sensitive(name: str) -> bool:
    return SENSITIVE_RE.search(name) is not None


def build_command_stub(command_name: str, entities: List[Entity]) -> Optional[str]:
    """
    Generate a PowerShell function skeleton for an entity operation.

    Parameters carry `# Source:` and `# Key` markers so the stub parses
    back into the same origins. Read commands take the key, Create
    commands every non-key attribute, Update commands the key plus the
    rest as optional, Delete commands the key.

    Args:
        command_name: Verb-Noun name, e.g. "Create-User"
        entities: Schema entities

    Returns:
        Script text, or None when the verb or noun is not recognised
    """
    probe = Command(name=command_name)
    if probe.verb is None or probe.noun is None:
        return None
    operation = canonical_operation(probe.verb)
    entity = next((e for e in entities if noun_matches(probe.noun, e.name)), None)
    if operation is None or entity is None:
        logger.warning(f"Cannot build stub for {command_name}: unknown operation or entity")
        return None

    key_name = entity.key_name
    key_attr = entity.get_attribute(key_name)
    key_type = key_attr.type if key_attr is not None else "String"
    others = [(a.name, a.type) for a in entity.attributes if a.name != key_name] or [("Name", "String")]

    # (name, type, mandatory, is_key)
    params = []
    if operation == "List":
        params = [(key_name, key_type, False, True)]
    elif operation == "Insert":
        params = [(name, t, True, False) for name, t in others]
    elif operation == "Update":
        params = [(key_name, key_type, True, True)] + [(name, t, False, False) for name, t in others]
    elif operation == "Delete":
        params = [(key_name, key_type, True, True)]

    lines = []
    for i, (name, ui_type, mandatory, is_key) in enumerate(params):
        attrs = MANDATORY_ATTRIBUTES if mandatory else OPTIONAL_ATTRIBUTES
        comma = "" if i == len(params) - 1 else ","
        key_mark = " # Key" if is_key else ""
        lines.append(
            f"        {attrs} [{PS_TYPE_NAMES[ui_type]}]${name}{comma} # Source: Schema{key_mark}"
        )
    param_block = "param(\n" + "\n".join(lines) + "\n    )" if lines else "param()"

    return (
        f"function global:{command_name} {{\n"
        f"    [CmdletBinding()]\n"
        f"    {param_block}\n"
        f"\n"
        f"    # TODO: implement {probe.verb} for {entity.name}\n"
        f"}}\n"
    )


def seed_connection_globals(commands: List[Command], existing: List[GlobalParameter]) -> List[GlobalParameter]:
    """
    Add a connection parameter global for every `Source: Connection` parameter.

    Existing globals are kept as they are; names are compared ignoring case.

    Args:
        commands: Parsed commands
        existing: Globals already declared

    Returns:
        New list holding the existing globals followed by the seeded ones
    """
    result: List[GlobalParameter] = list(existing)
    known = {g.name.lower() for g in existing}
    for command in commands:
        for param in command.parameters:
            if param.origin != "Connection" or param.name.lower() in known:
                continue
            sensitive = looks_sensitive(param.name)
            result.append(
                ConnectionParameterGlobal(
                    name=param.name,
                    type=param.type,
                    description=SEEDED_GLOBAL_DESCRIPTION,
                    sensitive=sensitive,
                    secure=sensitive,
                )
            )
            known.add(param.name.lower())
            logger.info(f"Seeded connection parameter {param.name} from {command.name}")
    return result
