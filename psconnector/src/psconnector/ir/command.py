"""Command IR: externally implemented PowerShell functions and their parameters."""

import re
from typing import List, Literal, Optional
from pydantic import BaseModel, Field

UiType = Literal["String", "Int", "Bool", "DateTime"]

# Types as seen by inference, where a value may not be classifiable
InferredType = Literal["String", "Int", "Bool", "DateTime", "Unknown"]

ParamOrigin = Literal["Schema", "Connection", "Manual"]

VERB_NOUN_RE = re.compile(r"^([A-Za-z_]+)-(.+)$")


class Parameter(BaseModel):
    """A typed, flagged parameter of a command."""

    name: str
    type: UiType = "String"
    mandatory: bool = False
    has_default: bool = False
    origin: ParamOrigin = "Manual"  # advisory authoring metadata
    is_key: bool = False

    @property
    def required(self) -> bool:
        """True when the caller must supply a value."""
        return self.mandatory and not self.has_default


class Command(BaseModel):
    """A named Verb-Noun function with its parameter list."""

    name: str
    parameters: List[Parameter] = Field(default_factory=list)
    body: str = ""  # text between the function braces
    line: int = 1

    @property
    def verb(self) -> Optional[str]:
        m = VERB_NOUN_RE.match(self.name)
        return m.group(1) if m else None

    @property
    def noun(self) -> Optional[str]:
        m = VERB_NOUN_RE.match(self.name)
        return m.group(2) if m else None

    def get_parameter(self, name: str) -> Optional[Parameter]:
        """Look up a parameter by name, ignoring case."""
        wanted = name.lower()
        for param in self.parameters:
            if param.name.lower() == wanted:
                return param
        return None
