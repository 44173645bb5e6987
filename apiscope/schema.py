"""
Typed views over the pieces of an OpenAPI document the compiler reads.

The raw document is plain JSON. Each node the compiler cares about is parsed
into a pydantic model here, so the rest of the code works with attributes and
a closed set of schema kinds instead of poking at dicts:

    FieldSchema        - one (possibly nested) schema node
    Parameter          - one entry of an operation's "parameters" list
    RequestBody        - an operation's "requestBody" (content per media type)
    OperationDescriptor- one HTTP method on one path

All models are frozen: they are created once per compile pass and never
mutated afterwards. Unknown keys ("example", "nullable", "$ref", ...) are
tolerated and kept, because real API descriptions carry plenty of them.
"""

from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class SchemaKind(str, Enum):
    """The tag of a FieldSchema. Decided once, then dispatched on."""

    ENUM = "enum"
    STRING = "string"
    NUMBER = "number"
    INTEGER = "integer"
    BOOLEAN = "boolean"
    ARRAY = "array"
    OBJECT = "object"
    ANY = "any"


class ParameterLocation(str, Enum):
    PATH = "path"
    QUERY = "query"
    HEADER = "header"
    COOKIE = "cookie"


class FieldSchema(BaseModel):
    """
    A declarative field schema: type, enum, format, bounds and nesting.

    `minimum`/`maximum` are value bounds for numbers and length bounds for
    strings. `type` may be a list in OpenAPI 3.1 (e.g. ["string", "null"]);
    the first non-null entry wins.
    """

    model_config = ConfigDict(extra="allow", frozen=True)

    type: str | list[str] | None = None
    enum: list[Any] | None = None
    format: str | None = None
    pattern: str | None = None
    minimum: int | float | None = None
    maximum: int | float | None = None
    properties: dict[str, "FieldSchema"] | None = None
    items: "FieldSchema | None" = None
    required: list[str] | None = None
    description: str | None = None

    @property
    def declared_type(self) -> str | None:
        if isinstance(self.type, list):
            return next((t for t in self.type if t != "null"), None)
        return self.type

    @property
    def kind(self) -> SchemaKind:
        if self.enum is not None:
            return SchemaKind.ENUM
        try:
            return SchemaKind(self.declared_type)
        except ValueError:
            return SchemaKind.ANY


class Parameter(BaseModel):
    """One operation parameter. `in` is a Python keyword, hence the alias."""

    model_config = ConfigDict(extra="allow", frozen=True, populate_by_name=True)

    name: str
    location: ParameterLocation = Field(alias="in")
    required: bool = False
    field_schema: FieldSchema = Field(default_factory=FieldSchema, alias="schema")
    description: str | None = None


class MediaType(BaseModel):
    model_config = ConfigDict(extra="allow", frozen=True, populate_by_name=True)

    field_schema: FieldSchema | None = Field(default=None, alias="schema")


class RequestBody(BaseModel):
    model_config = ConfigDict(extra="allow", frozen=True)

    content: dict[str, MediaType] = Field(default_factory=dict)
    required: bool = False
    description: str | None = None

    @property
    def json_schema(self) -> FieldSchema | None:
        """The application/json body schema, if the operation accepts JSON."""
        media = self.content.get("application/json")
        if media is None:
            return None
        return media.field_schema or FieldSchema(type="object")


class OperationDescriptor(BaseModel):
    """Immutable record of one HTTP method bound to one path."""

    model_config = ConfigDict(frozen=True)

    method: str
    path: str
    operation_id: str | None = None
    summary: str | None = None
    description: str | None = None
    parameters: tuple[Parameter, ...] = ()
    request_body: RequestBody | None = None
    deprecated: bool = False

    @property
    def label(self) -> str:
        """Human-readable identity used in log lines and error messages."""
        return self.operation_id or f"{self.method} {self.path}"
