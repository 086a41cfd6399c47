"""Compile a connector project and its commands into a descriptor tree."""

import xml.etree.ElementTree as ET
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple
from psconnector.binding.resolver import BindingGap, BindingResolver, ResolvedEntity, ResolvedItem
from psconnector.config.logging import get_logger
from psconnector.ir.bindings import (
    METHOD_OPERATIONS,
    WRITE_OPERATIONS,
    ConnectionParameterGlobal,
    GlobalParameter,
)
from psconnector.ir.command import Command
from psconnector.ir.project import ConnectorProject
from psconnector.ir.schema import Attribute
from psconnector.parsing.return_shape import find_field, infer_return_shape
from .bootstrap import authorization_script, module_load_script
from .constants import (
    AUTHORIZATION_COMMAND,
    DEFAULT_CONNECTOR_DESCRIPTION,
    DEFAULT_CONNECTOR_ID,
    DEFAULT_CONNECTOR_VERSION,
    MODULE_LOAD_COMMAND,
    MODULE_PATH_DESCRIPTION,
    MODULE_PATH_PARAMETER,
    OPTIONAL_SUFFIX,
    ROOT_TAG,
    SECURE_CONVERSION,
)
from .render import render_descriptor

logger = get_logger(__name__)


@dataclass
class CompileOptions:
    """Values the compiler needs that do not come from the project."""

    connector_id: str = DEFAULT_CONNECTOR_ID
    connector_description: str = DEFAULT_CONNECTOR_DESCRIPTION
    connector_version: str = DEFAULT_CONNECTOR_VERSION
    module_path_parameter: str = MODULE_PATH_PARAMETER


@dataclass
class CompilationResult:
    """Descriptor tree plus the non-fatal findings of one compilation."""

    root: ET.Element
    gaps: List[BindingGap] = field(default_factory=list)
    mandatory_globals: List[str] = field(default_factory=list)
    omitted_entities: List[str] = field(default_factory=list)

    def to_xml(self, pretty: bool = True, indent: int = 2) -> str:
        return render_descriptor(self.root, pretty=pretty, indent=indent)


def _flag(attrs: Dict[str, str], name: str, value: bool) -> None:
    if value:
        attrs[name] = "true"


def derive_mandatory_globals(entities: List[ResolvedEntity]) -> List[str]:
    """
    Globals bound to a mandatory, default-less parameter of any compiled chain.

    Args:
        entities: Resolved entities that survive into the descriptor

    Returns:
        Global names in first-seen order
    """
    names: List[str] = []
    for resolved in entities:
        for item in resolved.items():
            for param, target in item.inputs:
                if target.kind == "global" and param.required and target.name not in names:
                    names.append(target.name)
    return names


def referenced_commands(entities: List[ResolvedEntity], extra: List[Command]) -> List[str]:
    """Names of every command a compiled chain uses, first-seen order, then extra."""
    names: List[str] = []
    seen = set()
    for command in [item.command for r in entities for item in r.items()] + extra:
        if command.name.lower() not in seen:
            seen.add(command.name.lower())
            names.append(command.name)
    return names


class DescriptorBuilder:
    """Builds the element tree for one compilation pass."""

    def __init__(self, project: ConnectorProject, commands: List[Command], options: CompileOptions):
        self.project = project
        self.commands = commands
        self.options = options
        self.resolver = BindingResolver(project, commands)
        self.gaps: List[BindingGap] = []
        self.mandatory: List[str] = []
        self._shapes: Dict[str, Optional[Dict[str, str]]] = {}

    def _shape(self, command: Command) -> Optional[Dict[str, str]]:
        if command.name not in self._shapes:
            self._shapes[command.name] = infer_return_shape(command.body)
        return self._shapes[command.name]

    def _connection_globals(self) -> List[ConnectionParameterGlobal]:
        return [g for g in self.project.global_parameters if g.source == "ConnectionParameter"]

    def build(self) -> CompilationResult:
        resolved = self.resolver.resolve()
        survivors = [r for r in resolved if not r.is_empty]
        omitted = [r.entity.name for r in resolved if r.is_empty]
        for name in omitted:
            logger.info(f"Omitting entity {name}: no command for any operation")

        self.mandatory = derive_mandatory_globals(survivors)
        bind_commands = self._return_binding_commands(survivors)

        header = self.project.header
        root = ET.Element(
            ROOT_TAG,
            {
                "Description": header.description or self.options.connector_description,
                "Version": header.version or self.options.connector_version,
                "Id": header.id or self.options.connector_id,
            },
        )
        assemblies = ET.SubElement(root, "PluginAssemblies")
        for path in self.project.plugin_assemblies:
            ET.SubElement(assemblies, "Assembly", {"Path": path})

        self._connection_parameters(root)
        self._initialization(root, referenced_commands(survivors, bind_commands))

        schema = ET.SubElement(root, "Schema")
        for entity in survivors:
            self._class(schema, entity)

        self.gaps = self.resolver.gaps + self.gaps
        logger.info(
            f"Compiled {len(survivors)} classes, omitted {len(omitted)}, "
            f"{len(self.gaps)} binding gaps"
        )
        return CompilationResult(
            root=root,
            gaps=self.gaps,
            mandatory_globals=list(self.mandatory),
            omitted_entities=omitted,
        )

    def _return_binding_commands(self, survivors: List[ResolvedEntity]) -> List[Command]:
        extra = []
        for resolved in survivors:
            overrides = self.project.bindings.properties.get(resolved.entity.name, {})
            for attr_name, prop in overrides.items():
                for bind in prop.return_bindings:
                    command = self.resolver.get_command(bind.command)
                    if command is None:
                        self.gaps.append(
                            BindingGap(
                                resolved.entity.name, "List", bind.command, None,
                                f"return binding for '{attr_name}' names an undefined command",
                            )
                        )
                    elif command not in extra:
                        extra.append(command)
        return extra

    def _connection_parameters(self, root: ET.Element) -> None:
        section = ET.SubElement(root, "ConnectionParameters")
        module_path = self.options.module_path_parameter
        params: List[Tuple[str, str, bool]] = [
            (g.name, g.description, g.sensitive) for g in self._connection_globals()
        ]
        if not any(name.lower() == module_path.lower() for name, _, _ in params):
            params.append((module_path, MODULE_PATH_DESCRIPTION, False))

        for name, description, sensitive in params:
            text = description.strip() or name
            if name not in self.mandatory:
                text += OPTIONAL_SUFFIX
            attrs = {"Description": text, "Name": name}
            _flag(attrs, "IsSensibleData", sensitive)
            ET.SubElement(section, "ConnectionParameter", attrs)

    def _initialization(self, root: ET.Element, predefined: List[str]) -> None:
        init = ET.SubElement(root, "Initialization")
        module_path = self.options.module_path_parameter
        connection = [
            g for g in self._connection_globals() if g.name.lower() != module_path.lower()
        ]

        custom = ET.SubElement(init, "CustomCommands")
        load = ET.SubElement(custom, "CustomCommand", {"Name": MODULE_LOAD_COMMAND})
        load.text = module_load_script(module_path)
        auth = ET.SubElement(custom, "CustomCommand", {"Name": AUTHORIZATION_COMMAND})
        auth.text = authorization_script([g.name for g in connection], self.mandatory)

        section = ET.SubElement(init, "PredefinedCommands")
        for name in predefined:
            ET.SubElement(section, "Command", {"Name": name})

        env = ET.SubElement(init, "EnvironmentInitialization")
        sequence = ET.SubElement(ET.SubElement(env, "Connect"), "CommandSequence")
        item = ET.SubElement(sequence, "Item", {"Order": "1", "Command": MODULE_LOAD_COMMAND})
        ET.SubElement(
            item,
            "SetParameter",
            {"Value": module_path, "Source": "ConnectionParameter", "Param": f"_{module_path}"},
        )
        item = ET.SubElement(sequence, "Item", {"Order": "2", "Command": AUTHORIZATION_COMMAND})
        for g in connection:
            attrs = {"Value": g.name, "Source": "ConnectionParameter", "Param": g.name}
            if g.secure:
                attrs["ConversionMethod"] = SECURE_CONVERSION
            ET.SubElement(item, "SetParameter", attrs)
        ET.SubElement(env, "Disconnect")

    def _set_parameters(self, parent: ET.Element, item: ResolvedItem) -> None:
        seen = set()
        for param, target in item.inputs:
            if param.name.lower() in seen or target.kind == "attribute":
                continue
            seen.add(param.name.lower())
            if target.kind == "manual":
                attrs = {"Value": target.value, "Source": "FixedValue", "Param": param.name}
            else:
                attrs = set_parameter_attributes(self.project.get_global(target.name), param.name)
            ET.SubElement(parent, "SetParameter", attrs)

    def _class(self, schema: ET.Element, resolved: ResolvedEntity) -> None:
        entity = resolved.entity
        cls = ET.SubElement(schema, "Class", {"Name": entity.name})
        props = ET.SubElement(cls, "Properties")
        usage = PropertyUsage.collect(resolved)
        for attr in entity.attributes:
            self._property(props, resolved, attr, usage)

        if resolved.listing is not None:
            read = ET.SubElement(cls, "ReadConfiguration")
            listing = ET.SubElement(read, "ListingCommand", {"Command": resolved.listing.command.name})
            self._set_parameters(listing, resolved.listing)
            sequence = ET.SubElement(read, "CommandSequence")
            item = ET.SubElement(
                sequence, "Item", {"Order": "1", "Command": resolved.sequence_item.command.name}
            )
            self._set_parameters(item, resolved.sequence_item)

        operations = [op for op in METHOD_OPERATIONS if resolved.methods.get(op)]
        if operations:
            methods = ET.SubElement(cls, "MethodConfiguration")
            for operation in operations:
                method = ET.SubElement(methods, "Method", {"Name": operation})
                sequence = ET.SubElement(method, "CommandSequence")
                for chain_item in resolved.methods[operation]:
                    attrs = {"Order": str(chain_item.order), "Command": chain_item.command.name}
                    if chain_item.condition:
                        attrs["Condition"] = chain_item.condition
                    item = ET.SubElement(sequence, "Item", attrs)
                    self._set_parameters(item, chain_item)

    def _property(self, props: ET.Element, resolved: ResolvedEntity, attr: Attribute, usage: "PropertyUsage") -> None:
        key = attr.name.lower()
        suppressed = attr.is_auto_fill or attr.access == "ReadOnly"
        mandatory = not suppressed and (attr.is_mandatory or key in usage.forced_mandatory)

        attrs = {"Name": attr.name, "DataType": attr.type}
        if attr.access != "None":
            attrs["AccessConstraint"] = attr.access
        _flag(attrs, "IsDisplay", attr.is_display)
        _flag(attrs, "IsUniqueKey", attr.is_key)
        _flag(attrs, "IsMultiValue", attr.is_multi_value)
        _flag(attrs, "IsSecret", attr.is_secret)
        _flag(attrs, "IsObsolete", attr.is_obsolete)
        _flag(attrs, "IsRevision", attr.is_revision)
        if attr.description.strip():
            attrs["Description"] = attr.description
        _flag(attrs, "IsMandatory", mandatory)
        prop = ET.SubElement(props, "Property", attrs)

        if attr.is_multi_value and attr.reference_targets:
            targets = ET.SubElement(prop, "ReferenceTargets")
            for ref in attr.reference_targets:
                ET.SubElement(targets, "ReferenceTarget", {"Class": ref.class_name, "Property": ref.property})

        maps = usage.maps.get(key, [])
        if maps:
            mappings = ET.SubElement(prop, "CommandMappings")
            for map_attrs in maps:
                ET.SubElement(mappings, "Map", map_attrs)

        if not suppressed:
            triggers = list(usage.inserted_by.get(key, []))
            if attr.access != "ReadAndInsertOnly":
                triggers += usage.updated_by.get(key, [])
            if triggers:
                modified = ET.SubElement(prop, "ModifiedBy")
                for command, condition in triggers:
                    mod_attrs = {"Command": command}
                    if condition:
                        mod_attrs["Condition"] = condition
                    ET.SubElement(modified, "ModBy", mod_attrs)

        if attr.access != "WriteOnly":
            binds = self._return_bindings(resolved, attr)
            if binds:
                section = ET.SubElement(prop, "ReturnBindings")
                for command, path in binds:
                    ET.SubElement(section, "Bind", {"Path": path, "CommandResultOf": command})

    def _return_bindings(self, resolved: ResolvedEntity, attr: Attribute) -> List[Tuple[str, str]]:
        binds: List[Tuple[str, str]] = []
        prop = self.project.bindings.property_for(resolved.entity.name, attr.name)
        if prop is not None and prop.return_bindings:
            for bind in prop.return_bindings:
                command = self.resolver.get_command(bind.command)
                if command is None:
                    continue
                entry = (command.name, bind.path.strip() or attr.name)
                if entry not in binds:
                    binds.append(entry)
            return binds

        if resolved.listing is None:
            return binds
        listing = resolved.listing.command
        shape = self._shape(listing)
        if shape is None:
            return [(listing.name, attr.name)]
        field_name = find_field(shape, attr.name)
        if field_name is not None and shape[field_name] in ("Unknown", attr.type):
            return [(listing.name, field_name)]
        return binds


def set_parameter_attributes(param_global: GlobalParameter, param_name: str) -> Dict[str, str]:
    """
    SetParameter attributes for a command parameter fed from a global.

    Args:
        param_global: The bound global parameter
        param_name: Target command parameter

    Returns:
        Attribute mapping in rendering order
    """
    source = param_global.source
    if source == "ConnectionParameter":
        attrs = {"Value": param_global.name, "Source": source, "Param": param_name}
        if param_global.secure:
            attrs["ConversionMethod"] = SECURE_CONVERSION
        return attrs
    if source == "FixedValue":
        return {"Value": param_global.value, "Source": source, "Param": param_name}
    if source == "GlobalVariable":
        return {"Value": param_global.name, "Source": source, "Param": param_name}
    if source == "SwitchParameter":
        return {"Source": source, "Param": param_name}
    if source == "FixedArray":
        return {"Value": ",".join(param_global.values), "Source": source, "Param": param_name}
    raise ValueError(f"Unknown global parameter source: {source}")


@dataclass
class PropertyUsage:
    """How the chains of one entity read and write its attributes."""

    maps: Dict[str, List[Dict[str, str]]] = field(default_factory=dict)
    forced_mandatory: set = field(default_factory=set)
    inserted_by: Dict[str, List[Tuple[str, Optional[str]]]] = field(default_factory=dict)
    updated_by: Dict[str, List[Tuple[str, Optional[str]]]] = field(default_factory=dict)

    @classmethod
    def collect(cls, resolved: ResolvedEntity) -> "PropertyUsage":
        usage = cls()
        seen_maps = set()
        for item in resolved.items():
            for param, target in item.inputs:
                if target.kind != "attribute":
                    continue
                key = target.name.lower()
                map_key = (key, item.command.name, param.name)
                if map_key not in seen_maps:
                    seen_maps.add(map_key)
                    attrs = {"ToCommand": item.command.name, "Parameter": param.name}
                    if item.operation == "Update" and target.use_old_value:
                        attrs["UseOldValue"] = "true"
                    if target.converter != "None":
                        attrs["Converter"] = target.converter
                    if item.operation == "Update" and target.mod_type != "None":
                        attrs["ModType"] = target.mod_type
                    usage.maps.setdefault(key, []).append(attrs)

                if item.operation not in WRITE_OPERATIONS:
                    continue
                if param.required:
                    usage.forced_mandatory.add(key)
                bucket = usage.inserted_by if item.operation == "Insert" else usage.updated_by
                trigger = (item.command.name, item.condition)
                if trigger not in bucket.setdefault(key, []):
                    bucket[key].append(trigger)
        return usage


def compile_descriptor(
    project: ConnectorProject,
    commands: List[Command],
    options: Optional[CompileOptions] = None,
) -> CompilationResult:
    """
    Compile a project and its parsed commands into a descriptor.

    The function is pure: inputs are not modified and identical inputs
    render to identical text.

    Args:
        project: Schema, bindings and globals
        commands: Parsed commands in declaration order
        options: Header defaults and module path parameter name

    Returns:
        CompilationResult with the descriptor tree and binding gaps
    """
    return DescriptorBuilder(project, commands, options or CompileOptions()).build()
