"""Resolve operation chains and parameter bindings for every entity."""

from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple
from psconnector.config.logging import get_logger
from psconnector.ir.bindings import (
    METHOD_OPERATIONS,
    OPERATIONS,
    WRITE_OPERATIONS,
    AttributeTarget,
    BindingTarget,
    ChainItem,
    GlobalTarget,
)
from psconnector.ir.command import Command, Parameter
from psconnector.ir.project import ConnectorProject
from psconnector.ir.schema import Entity
from .defaults import find_default_command

logger = get_logger(__name__)


@dataclass
class BindingGap:
    """A parameter slot or chain item that could not be resolved."""

    entity: str
    operation: str
    command: str
    parameter: Optional[str]
    message: str


@dataclass
class ResolvedItem:
    """A chain item whose command exists and whose inputs are validated."""

    command: Command
    operation: str
    order: int = 1
    condition: Optional[str] = None
    # (declared parameter, target) in parameter declaration order, one per parameter
    inputs: List[Tuple[Parameter, BindingTarget]] = field(default_factory=list)

    def target_for(self, parameter: str) -> Optional[BindingTarget]:
        wanted = parameter.lower()
        for param, target in self.inputs:
            if param.name.lower() == wanted:
                return target
        return None


@dataclass
class ResolvedEntity:
    """All resolved chains of one entity."""

    entity: Entity
    listing: Optional[ResolvedItem] = None
    sequence_item: Optional[ResolvedItem] = None
    methods: Dict[str, List[ResolvedItem]] = field(default_factory=dict)

    @property
    def is_empty(self) -> bool:
        return self.listing is None and not any(self.methods.values())

    def items(self) -> List[ResolvedItem]:
        """Every rendered item: listing, sequence item, then methods in order."""
        out = []
        if self.listing is not None:
            out.append(self.listing)
        if self.sequence_item is not None:
            out.append(self.sequence_item)
        for operation in METHOD_OPERATIONS:
            out.extend(self.methods.get(operation, []))
        return out


def effective_entity(project: ConnectorProject, entity: Entity) -> Entity:
    """Copy of entity with per-property access overrides applied."""
    overrides = project.bindings.properties.get(entity.name, {})
    if not overrides:
        return entity
    attributes = []
    for attr in entity.attributes:
        prop = overrides.get(attr.name)
        if prop is not None and prop.access is not None:
            attr = attr.model_copy(update={"access": prop.access})
        attributes.append(attr)
    return entity.model_copy(update={"attributes": attributes})


class BindingResolver:
    """
    Resolve chains for a project against a set of parsed commands.

    Declared chains override defaults. Gaps are collected on `gaps` and
    never raise.
    """

    def __init__(self, project: ConnectorProject, commands: List[Command]):
        self.project = project
        self.commands = commands
        self._by_name = {c.name.lower(): c for c in reversed(commands)}
        self.gaps: List[BindingGap] = []

    def _gap(self, entity: str, operation: str, command: str, parameter: Optional[str], message: str) -> None:
        logger.info(f"Binding gap in {entity}.{operation} ({command}): {message}")
        self.gaps.append(BindingGap(entity, operation, command, parameter, message))

    def get_command(self, name: str) -> Optional[Command]:
        return self._by_name.get(name.lower())

    def resolve(self) -> List[ResolvedEntity]:
        """Resolve every entity in schema order."""
        self.gaps = []
        return [self.resolve_entity(e) for e in self.project.entities]

    def resolve_entity(self, entity: Entity) -> ResolvedEntity:
        entity = effective_entity(self.project, entity)
        chains: Dict[str, List[ResolvedItem]] = {}
        for operation in OPERATIONS:
            chains[operation] = self._resolve_chain(entity, operation)

        resolved = ResolvedEntity(entity=entity)
        resolved.listing = self._collapse_listing(entity, chains["List"], chains["View"])
        if resolved.listing is not None:
            if chains["View"]:
                view = chains["View"][0]
                resolved.sequence_item = ResolvedItem(
                    command=view.command,
                    operation="View",
                    order=1,
                    inputs=list(view.inputs),
                )
                if len(chains["View"]) > 1:
                    logger.info(
                        f"{entity.name}: keeping {view.command.name} as the single read item, "
                        f"dropping {len(chains['View']) - 1} more"
                    )
            else:
                resolved.sequence_item = ResolvedItem(
                    command=resolved.listing.command,
                    operation="View",
                    order=1,
                    inputs=list(resolved.listing.inputs),
                )
        for operation in METHOD_OPERATIONS:
            resolved.methods[operation] = chains[operation]
        return resolved

    def _collapse_listing(
        self, entity: Entity, list_items: List[ResolvedItem], view_items: List[ResolvedItem]
    ) -> Optional[ResolvedItem]:
        source = list_items or view_items
        if not source:
            return None
        first = source[0]
        merged: Dict[str, Tuple[Parameter, BindingTarget]] = {}
        for item in source:
            if item.command.name.lower() != first.command.name.lower():
                logger.info(
                    f"{entity.name}: collapsing listing chain to {first.command.name}, "
                    f"ignoring {item.command.name}"
                )
                continue
            for param, target in item.inputs:
                merged.setdefault(param.name.lower(), (param, target))
        inputs = [merged[p.name.lower()] for p in first.command.parameters if p.name.lower() in merged]
        return ResolvedItem(command=first.command, operation="List", order=1, inputs=inputs)

    def _resolve_chain(self, entity: Entity, operation: str) -> List[ResolvedItem]:
        declared = self.project.bindings.chain_for(entity.name, operation)
        if declared is None:
            default = find_default_command(entity.name, operation, self.commands)
            declared = [ChainItem(command=default.name)] if default is not None else []
            if default is not None:
                logger.debug(f"{entity.name}.{operation}: default command {default.name}")

        items: List[ResolvedItem] = []
        for item in sorted(declared, key=lambda i: i.order):
            command = self.get_command(item.command)
            if command is None:
                self._gap(entity.name, operation, item.command, None, "command is not defined")
                continue
            items.append(
                ResolvedItem(
                    command=command,
                    operation=operation,
                    order=item.order,
                    condition=item.condition if operation == "Update" else None,
                    inputs=self._resolve_inputs(entity, operation, command, item),
                )
            )
        return items

    def _resolve_inputs(
        self, entity: Entity, operation: str, command: Command, item: ChainItem
    ) -> List[Tuple[Parameter, BindingTarget]]:
        declared = {name.lower(): target for name, target in item.inputs.items()}
        for name in item.inputs:
            if command.get_parameter(name) is None:
                self._gap(entity.name, operation, command.name, name, "command has no such parameter")

        inputs: List[Tuple[Parameter, BindingTarget]] = []
        for param in command.parameters:
            target = declared.get(param.name.lower())
            if target is not None:
                target = self._check_target(entity, operation, command, param, target)
            else:
                target = self._default_target(entity, operation, param)
            if target is None:
                if param.required:
                    self._gap(
                        entity.name, operation, command.name, param.name,
                        "mandatory parameter has no binding",
                    )
                continue
            inputs.append((param, target))
        return inputs

    def _check_target(
        self, entity: Entity, operation: str, command: Command, param: Parameter, target: BindingTarget
    ) -> Optional[BindingTarget]:
        if target.kind == "attribute":
            attr = entity.get_attribute(target.name)
            if attr is None:
                self._gap(entity.name, operation, command.name, param.name, f"unknown attribute '{target.name}'")
                return None
            if operation in WRITE_OPERATIONS and attr.write_excluded:
                self._gap(
                    entity.name, operation, command.name, param.name,
                    f"attribute '{attr.name}' cannot be written",
                )
                return None
            return target.model_copy(update={"name": attr.name})
        if target.kind == "global":
            param_global = self.project.get_global(target.name)
            if param_global is None:
                self._gap(entity.name, operation, command.name, param.name, f"unknown global '{target.name}'")
                return None
            return GlobalTarget(name=param_global.name)
        return target

    def _default_target(self, entity: Entity, operation: str, param: Parameter) -> Optional[BindingTarget]:
        if param.origin == "Schema":
            attr = entity.get_attribute(param.name)
            if attr is None:
                return None
            if operation in WRITE_OPERATIONS and attr.write_excluded:
                return None
            return AttributeTarget(name=attr.name)
        if param.origin == "Connection":
            param_global = self.project.get_global(param.name)
            if param_global is not None:
                return GlobalTarget(name=param_global.name)
        return None
