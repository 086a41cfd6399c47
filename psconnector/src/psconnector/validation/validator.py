"""Cross-check a descriptor against the PowerShell source it refers to."""

import xml.etree.ElementTree as ET
from dataclasses import dataclass, field
from typing import Dict, List, Literal, Optional
from psconnector.config.logging import get_logger
from psconnector.ir.command import Command
from psconnector.parsing.commands import CommandParser
from psconnector.parsing.return_shape import find_field, infer_return_shape
from .locator import ElementLocator

logger = get_logger(__name__)

KNOWN_TYPES = {"String", "Int", "Bool", "DateTime"}


@dataclass
class Issue:
    """A finding of the validator."""

    severity: Literal["error", "warning"]
    code: str  # e.g. "BIND_PATH_MISSING", "COMMAND_UNDECLARED"
    message: str
    line: int = 0
    column: int = 0
    location: str = ""  # e.g. "User.name"
    details: dict = field(default_factory=dict)


@dataclass
class ValidationReport:
    """All findings of one validation run, sorted by line."""

    issues: List[Issue] = field(default_factory=list)

    @property
    def errors(self) -> List[Issue]:
        return [i for i in self.issues if i.severity == "error"]

    @property
    def warnings(self) -> List[Issue]:
        return [i for i in self.issues if i.severity == "warning"]

    @property
    def ok(self) -> bool:
        return not self.errors


def normalize_data_type(value: Optional[str]) -> str:
    """Canonical scalar type name, or Unknown."""
    if not value:
        return "Unknown"
    for known in KNOWN_TYPES:
        if known.lower() == value.strip().lower():
            return known
    return "Unknown"


class DescriptorValidator:
    """
    Validate one descriptor text against one command source.

    The command source is re-parsed here; nothing from a compiler run is
    reused. Every check runs; findings are collected, never raised.
    """

    def __init__(self, descriptor: str, source: str):
        self.descriptor = descriptor
        self.source = source
        self.issues: List[Issue] = []
        self.parser = CommandParser()
        self._defined: Dict[str, Command] = {}
        self._predefined: Dict[str, str] = {}
        self._custom: Dict[str, Command] = {}
        self._shapes: Dict[str, Optional[Dict[str, str]]] = {}
        self._locator: Optional[ElementLocator] = None

    def _add(self, severity: str, code: str, message: str, element: Optional[ET.Element] = None,
             location: str = "", **details) -> None:
        line, column = self._locator.locate(element) if element is not None and self._locator else (0, 0)
        self.issues.append(
            Issue(
                severity=severity,
                code=code,
                message=message,
                line=line,
                column=column,
                location=location,
                details=details,
            )
        )

    def error(self, code: str, message: str, element: Optional[ET.Element] = None, location: str = "", **details) -> None:
        self._add("error", code, message, element, location, **details)

    def warning(self, code: str, message: str, element: Optional[ET.Element] = None, location: str = "", **details) -> None:
        self._add("warning", code, message, element, location, **details)

    def validate(self) -> ValidationReport:
        """Run every check and return the sorted findings."""
        self.issues = []
        try:
            root = ET.fromstring(self.descriptor)
        except ET.ParseError as e:
            line, column = e.position
            self.issues.append(
                Issue(
                    severity="error",
                    code="XML_PARSE",
                    message=f"Descriptor is not well-formed XML: {e}",
                    line=line,
                    column=column + 1,
                )
            )
            return ValidationReport(issues=self.issues)

        self._locator = ElementLocator(self.descriptor, root)
        self._defined = {c.name.lower(): c for c in reversed(self.parser.parse(self.source))}
        self._collect_declarations(root)

        parents = {child: parent for parent in root.iter() for child in parent}
        for element in root.iter():
            if element.tag in ("ListingCommand", "Item"):
                self.resolve(element.get("Command", ""), element)
            elif element.tag == "SetParameter":
                self._check_set_parameter(element, parents.get(element))

        for cls in root.iter("Class"):
            self._check_class(cls)

        self.issues.sort(key=lambda i: (i.line, i.column))
        report = ValidationReport(issues=self.issues)
        if report.issues:
            logger.warning(
                f"Descriptor validation found {len(report.errors)} errors "
                f"and {len(report.warnings)} warnings"
            )
        else:
            logger.info("Descriptor validation passed")
        return report

    def _collect_declarations(self, root: ET.Element) -> None:
        self._predefined = {}
        self._custom = {}
        for section in root.iter("PredefinedCommands"):
            for cmd in section.findall("Command"):
                name = cmd.get("Name", "").strip()
                if not name:
                    self.error("COMMAND_NO_NAME", "Predefined command has no name", cmd)
                    continue
                self._predefined[name.lower()] = name
                if name.lower() not in self._defined:
                    self.error(
                        "COMMAND_UNDEFINED",
                        f"Predefined command '{name}' is not defined in the PowerShell source",
                        cmd,
                        location=name,
                    )
        for section in root.iter("CustomCommands"):
            for cmd in section.findall("CustomCommand"):
                name = cmd.get("Name", "").strip()
                if not name:
                    self.error("COMMAND_NO_NAME", "Custom command has no name", cmd)
                    continue
                text = cmd.text or ""
                self._custom[name.lower()] = Command(
                    name=name,
                    parameters=self.parser.parse_param_block(text),
                    body=text,
                )

    def resolve(self, name: str, element: ET.Element) -> Optional[Command]:
        """
        Find the command a descriptor element references.

        Reports an error when the command is not declared. A declared but
        undefined predefined command was reported with its declaration and
        resolves to None here.
        """
        key = name.strip().lower()
        if key in self._custom:
            return self._custom[key]
        if key in self._predefined:
            return self._defined.get(key)
        self.error(
            "COMMAND_UNDECLARED",
            f"{element.tag} references command '{name}', which is not declared "
            f"as a predefined or custom command",
            element,
            location=name,
        )
        return None

    def _shape(self, command: Command) -> Optional[Dict[str, str]]:
        if command.name not in self._shapes:
            self._shapes[command.name] = infer_return_shape(command.body)
        return self._shapes[command.name]

    def _check_set_parameter(self, element: ET.Element, parent: Optional[ET.Element]) -> None:
        param_name = element.get("Param", "").strip()
        source = element.get("Source", "")
        if parent is None or parent.tag not in ("Item", "ListingCommand"):
            self.error(
                "SETPARAM_NO_COMMAND",
                "SetParameter is not inside an Item or ListingCommand",
                element,
                location=param_name,
            )
            return
        if not param_name:
            self.error("SETPARAM_NO_PARAM", "SetParameter has no Param attribute", element)
            return
        if source != "ConnectionParameter":
            self.error(
                "SETPARAM_SOURCE",
                f"SetParameter '{param_name}' has Source '{source}', expected 'ConnectionParameter'",
                element,
                location=param_name,
            )

        key = parent.get("Command", "").strip().lower()
        command = self._custom.get(key) or (self._defined.get(key) if key in self._predefined else None)
        if command is None:
            return
        param = command.get_parameter(param_name)
        if param is None:
            self.error(
                "SETPARAM_UNKNOWN_PARAM",
                f"Command '{command.name}' has no parameter '{param_name}'",
                element,
                location=f"{command.name}.{param_name}",
            )
        elif param.type != "String":
            self.warning(
                "SETPARAM_TYPE",
                f"Connection value bound to {param.type} parameter '{param_name}' of '{command.name}'",
                element,
                location=f"{command.name}.{param_name}",
            )

    def _check_class(self, cls: ET.Element) -> None:
        class_name = cls.get("Name", "")
        props = cls.find("Properties")
        for prop in props.findall("Property") if props is not None else []:
            self._check_property(class_name, prop)

        read = cls.find("ReadConfiguration")
        if read is None:
            self.warning(
                "READCONFIG_MISSING",
                f"Class '{class_name}' has no ReadConfiguration",
                cls,
                location=class_name,
            )
            return
        children = list(read)
        listing = read.find("ListingCommand")
        sequence = read.find("CommandSequence")
        if listing is None or sequence is None:
            missing = "ListingCommand" if listing is None else "CommandSequence"
            self.error(
                "READCONFIG_INCOMPLETE",
                f"ReadConfiguration of '{class_name}' has no {missing}",
                read,
                location=class_name,
            )
            return
        if children.index(sequence) < children.index(listing):
            self.error(
                "READCONFIG_ORDER",
                f"CommandSequence of '{class_name}' must follow its ListingCommand",
                sequence,
                location=class_name,
            )

    def _check_property(self, class_name: str, prop: ET.Element) -> None:
        name = prop.get("Name", "")
        data_type = normalize_data_type(prop.get("DataType"))
        location = f"{class_name}.{name}"

        for mapping in prop.iter("Map"):
            command = self.resolve(mapping.get("ToCommand", ""), mapping)
            if command is None:
                continue
            param_name = mapping.get("Parameter", "")
            param = command.get_parameter(param_name)
            if param is None:
                self.error(
                    "MAP_UNKNOWN_PARAM",
                    f"Command '{command.name}' has no parameter '{param_name}'",
                    mapping,
                    location=location,
                )
                continue
            if param.name.lower() != name.lower():
                self.error(
                    "MAP_NAME_MISMATCH",
                    f"Property '{name}' is mapped to parameter '{param.name}' of '{command.name}'",
                    mapping,
                    location=location,
                )
            if data_type == "Unknown":
                self.warning(
                    "MAP_TYPE_UNKNOWN",
                    f"Cannot compare types of '{name}' and parameter '{param.name}'",
                    mapping,
                    location=location,
                )
            elif data_type != param.type:
                self.error(
                    "MAP_TYPE_MISMATCH",
                    f"Property '{name}' is {data_type} but parameter '{param.name}' "
                    f"of '{command.name}' is {param.type}",
                    mapping,
                    location=location,
                )

        for mod in prop.iter("ModBy"):
            command = self.resolve(mod.get("Command", ""), mod)
            if command is not None and command.get_parameter(name) is None:
                self.error(
                    "MODBY_NO_PARAM",
                    f"Command '{command.name}' modifies '{name}' but has no parameter of that name",
                    mod,
                    location=location,
                )

        for bind in prop.iter("Bind"):
            command = self.resolve(bind.get("CommandResultOf", ""), bind)
            if command is None:
                continue
            path = bind.get("Path", "").strip() or name
            shape = self._shape(command)
            if shape is None:
                self.warning(
                    "BIND_SHAPE_UNKNOWN",
                    f"Cannot infer the result of '{command.name}' to check path '{path}'",
                    bind,
                    location=location,
                )
                continue
            field_name = find_field(shape, path)
            if field_name is None:
                self.error(
                    "BIND_PATH_MISSING",
                    f"Result of '{command.name}' has no field '{path}'",
                    bind,
                    location=location,
                    command=command.name,
                    path=path,
                )
                continue
            inferred = shape[field_name]
            if inferred == "Unknown" or data_type == "Unknown":
                self.warning(
                    "BIND_TYPE_UNKNOWN",
                    f"Cannot compare type of '{name}' with result field '{field_name}'",
                    bind,
                    location=location,
                )
            elif inferred != data_type:
                self.error(
                    "BIND_TYPE_MISMATCH",
                    f"Property '{name}' is {data_type} but '{command.name}' returns "
                    f"'{field_name}' as {inferred}",
                    bind,
                    location=location,
                )


def validate_descriptor(descriptor: str, source: str) -> ValidationReport:
    """
    Validate a descriptor against a PowerShell command source.

    Args:
        descriptor: Descriptor XML text
        source: PowerShell script text defining the predefined commands

    Returns:
        ValidationReport with every finding sorted by line
    """
    return DescriptorValidator(descriptor, source).validate()
