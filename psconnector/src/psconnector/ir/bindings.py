"""Binding model: which values feed which command parameters, per entity operation."""

from typing import Annotated, Dict, List, Literal, Optional, Union
from pydantic import BaseModel, Discriminator, Field
from .command import UiType
from .schema import AccessConstraint

Operation = Literal["List", "View", "Insert", "Update", "Delete"]
OPERATIONS = ("List", "View", "Insert", "Update", "Delete")
WRITE_OPERATIONS = ("Insert", "Update")
METHOD_OPERATIONS = ("Insert", "Update", "Delete")

Converter = Literal[
    "None",
    "NullToEmptyString",
    "StringToCredential",
    "StringToSecureString",
    "TicksToTimespanString",
    "ZeroToNull",
    "CustomMvp",
]

ModType = Literal["None", "Replace", "Add", "Remove"]


class AttributeTarget(BaseModel):
    """Parameter fed from an entity attribute."""

    kind: Literal["attribute"] = "attribute"
    name: str
    use_old_value: bool = False
    converter: Converter = "None"
    mod_type: ModType = "None"


class GlobalTarget(BaseModel):
    """Parameter fed from a global parameter."""

    kind: Literal["global"] = "global"
    name: str


class ManualTarget(BaseModel):
    """Parameter fed from a constant typed in by the author."""

    kind: Literal["manual"] = "manual"
    value: str


BindingTarget = Annotated[
    Union[AttributeTarget, GlobalTarget, ManualTarget],
    Discriminator("kind"),
]


class ChainItem(BaseModel):
    """One command invocation inside an operation chain."""

    command: str
    order: int = 1
    condition: Optional[Literal["ModificationExists"]] = None
    inputs: Dict[str, BindingTarget] = Field(default_factory=dict)


class ReturnBinding(BaseModel):
    """Read a property's value from a field of a command result."""

    command: str
    path: str = ""  # blank means the property name


class PropertyBinding(BaseModel):
    """Per-property overrides applied on top of the schema attribute."""

    access: Optional[AccessConstraint] = None
    return_bindings: List[ReturnBinding] = Field(default_factory=list)


class BindingModel(BaseModel):
    """User-declared chains and property overrides, keyed by entity name."""

    chains: Dict[str, Dict[Operation, List[ChainItem]]] = Field(default_factory=dict)
    properties: Dict[str, Dict[str, PropertyBinding]] = Field(default_factory=dict)

    def chain_for(self, entity: str, operation: str) -> Optional[List[ChainItem]]:
        """User chain for an entity operation, or None when not declared."""
        by_op = self.chains.get(entity)
        if by_op is None:
            return None
        return by_op.get(operation)

    def property_for(self, entity: str, attribute: str) -> Optional[PropertyBinding]:
        return self.properties.get(entity, {}).get(attribute)


GlobalSource = Literal[
    "ConnectionParameter", "FixedValue", "GlobalVariable", "SwitchParameter", "FixedArray"
]


class GlobalBase(BaseModel):
    """Fields shared by every global parameter kind."""

    name: str
    type: UiType = "String"
    description: str = ""
    sensitive: bool = False


class ConnectionParameterGlobal(GlobalBase):
    source: Literal["ConnectionParameter"] = "ConnectionParameter"
    secure: bool = False  # pass as SecureString


class FixedValueGlobal(GlobalBase):
    source: Literal["FixedValue"] = "FixedValue"
    value: str = ""


class GlobalVariableGlobal(GlobalBase):
    source: Literal["GlobalVariable"] = "GlobalVariable"


class SwitchParameterGlobal(GlobalBase):
    source: Literal["SwitchParameter"] = "SwitchParameter"


class FixedArrayGlobal(GlobalBase):
    source: Literal["FixedArray"] = "FixedArray"
    values: List[str] = Field(default_factory=list)


GlobalParameter = Annotated[
    Union[
        ConnectionParameterGlobal,
        FixedValueGlobal,
        GlobalVariableGlobal,
        SwitchParameterGlobal,
        FixedArrayGlobal,
    ],
    Discriminator("source"),
]
