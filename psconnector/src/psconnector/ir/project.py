"""ConnectorProject: the authoring snapshot handed to the compiler."""

from typing import List, Optional
from pydantic import BaseModel, Field
from .bindings import BindingModel, GlobalParameter
from .schema import Entity


class ConnectorHeader(BaseModel):
    """Descriptor root attributes; unset fields fall back to configured defaults."""

    id: Optional[str] = None
    description: Optional[str] = None
    version: Optional[str] = None


class ConnectorProject(BaseModel):
    """Schema, bindings and globals for one connector."""

    header: ConnectorHeader = Field(default_factory=ConnectorHeader)
    plugin_assemblies: List[str] = Field(default_factory=list)
    entities: List[Entity] = Field(default_factory=list)
    bindings: BindingModel = Field(default_factory=BindingModel)
    global_parameters: List[GlobalParameter] = Field(default_factory=list)

    def get_entity(self, name: str) -> Optional[Entity]:
        wanted = name.lower()
        for entity in self.entities:
            if entity.name.lower() == wanted:
                return entity
        return None

    def get_global(self, name: str) -> Optional[GlobalParameter]:
        wanted = name.lower()
        for param in self.global_parameters:
            if param.name.lower() == wanted:
                return param
        return None
