"""Entity schema IR."""

from typing import List, Literal, Optional
from pydantic import BaseModel, Field, model_validator
from .command import UiType

AccessConstraint = Literal["None", "ReadOnly", "ReadAndInsertOnly", "WriteOnly"]


class ReferenceTarget(BaseModel):
    """Class/property pair a multi-value attribute points at."""

    class_name: str
    property: str


class Attribute(BaseModel):
    """A typed attribute of an entity."""

    name: str
    type: UiType = "String"
    is_key: bool = False
    is_display: bool = False
    is_multi_value: bool = False
    is_mandatory: bool = False
    is_auto_fill: bool = False
    access: AccessConstraint = "None"
    description: str = ""
    is_secret: bool = False
    is_obsolete: bool = False
    is_revision: bool = False
    reference_targets: List[ReferenceTarget] = Field(default_factory=list)

    @property
    def write_excluded(self) -> bool:
        """AutoFill and ReadOnly attributes never receive written values."""
        return self.is_auto_fill or self.access == "ReadOnly"


class Entity(BaseModel):
    """A schema entity (rendered as a descriptor class)."""

    name: str
    attributes: List[Attribute] = Field(default_factory=list)

    @model_validator(mode="after")
    def check_single_key(self) -> "Entity":
        """Ensure at most one attribute is flagged as key."""
        keys = [a.name for a in self.attributes if a.is_key]
        if len(keys) > 1:
            raise ValueError(
                f"Entity '{self.name}' has more than one key attribute: {', '.join(keys)}"
            )
        return self

    def get_attribute(self, name: str) -> Optional[Attribute]:
        """Look up an attribute by name, ignoring case."""
        wanted = name.lower()
        for attr in self.attributes:
            if attr.name.lower() == wanted:
                return attr
        return None

    @property
    def key_name(self) -> str:
        """Name of the identifying attribute, guessed when none is flagged."""
        for attr in self.attributes:
            if attr.is_key:
                return attr.name
        for attr in self.attributes:
            if attr.name.lower() == "id":
                return attr.name
        for attr in self.attributes:
            if attr.name.lower().endswith("id"):
                return attr.name
        if self.attributes:
            return self.attributes[0].name
        return "Id"
