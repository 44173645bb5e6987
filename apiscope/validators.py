"""
Schema translation: FieldSchema -> runtime Validator.

One recursive function, `_annotation_for`, walks a FieldSchema and produces a
pydantic-ready type annotation for it. `compile_schema` wraps that annotation
in a TypeAdapter, which is what actually checks and normalizes values.

Rules, in priority order:

1. `enum` present
   - every literal a string: surrounding quotes stripped, exact membership
   - zero literals: nothing is accepted
   - otherwise: exact match of any of the values, type included
     (True does not match 1)
2. dispatch on the declared type
   - string:  format "json" accepts any object; "email"/"uri" are checked;
              otherwise `pattern` is searched in the value; minimum/maximum
              bound the length
   - number / integer: value bounds; integer-only for "integer"; no
              coercion from strings or booleans, and an integer given
              for "number" stays an integer
   - boolean: true/false only
   - array:   items compiled recursively (anything if no items)
   - object:  declared properties compiled recursively, `required` honoured,
              every undeclared key kept as-is
   - anything else: accepted unchanged

Objects are always open. Keys that a schema doesn't declare are legitimate
payload (secret names, for instance) and survive validation at every depth,
including objects nested inside arrays.
"""

import re
from dataclasses import dataclass
from typing import Annotated, Any, Callable, Literal

from pydantic import (
    AfterValidator,
    AnyUrl,
    ConfigDict,
    EmailStr,
    Field,
    PydanticUserError,
    Strict,
    StringConstraints,
    TypeAdapter,
    ValidationError,
    create_model,
)

from apiscope.errors import SpecCompileError
from apiscope.schema import FieldSchema, OperationDescriptor, SchemaKind

_SURROUNDING_QUOTES = re.compile(r'^"|"$')

_EMAIL = TypeAdapter(EmailStr)
_URI = TypeAdapter(AnyUrl)

# Every generated object model accepts and keeps unknown keys.
_OPEN_OBJECT = ConfigDict(extra="allow")


@dataclass(frozen=True)
class Validator:
    """
    A compiled schema.

    `check` raises pydantic.ValidationError for rejected values and returns
    the normalized value otherwise: plain dicts/lists/scalars, with optional
    properties the caller left out not filled in.
    """

    kind: SchemaKind
    adapter: TypeAdapter

    def check(self, value: Any) -> Any:
        validated = self.adapter.validate_python(value)
        return self.adapter.dump_python(
            validated, mode="json", by_alias=True, exclude_unset=True
        )


def compile_schema(schema: FieldSchema) -> Validator:
    """
    Compile a FieldSchema into a Validator.

    Raises:
        SpecCompileError: The schema node can't be expressed (bad regex,
            unhashable enum literal, or pydantic refuses the built type)
    """
    annotation = _annotation_for(schema)
    try:
        adapter = TypeAdapter(annotation)
    except (PydanticUserError, TypeError) as e:
        raise SpecCompileError(f"unsupported schema: {e}") from e
    return Validator(kind=schema.kind, adapter=adapter)


def compile_input_validator(operation: OperationDescriptor) -> Validator:
    """
    Build the validator for a whole tool call.

    The tool input is one flat, open object: every operation parameter plus
    every declared property of the JSON request body. A body property with the
    same name as a parameter replaces it.
    """
    properties: dict[str, FieldSchema] = {}
    required: set[str] = set()

    for param in operation.parameters:
        properties[param.name] = param.field_schema
        if param.required:
            required.add(param.name)

    body_schema = operation.request_body.json_schema if operation.request_body else None
    if body_schema is not None and body_schema.properties:
        body_required = set(body_schema.required or [])
        for prop_name, prop_schema in body_schema.properties.items():
            properties[prop_name] = prop_schema
            if prop_name in body_required:
                required.add(prop_name)
            else:
                required.discard(prop_name)

    return compile_schema(
        FieldSchema(type="object", properties=properties, required=sorted(required))
    )


# ---------------------------------------------------------------------------
# The recursive walk
# ---------------------------------------------------------------------------


def _annotation_for(schema: FieldSchema) -> Any:
    return _BUILDERS[schema.kind](schema)


def _enum_annotation(schema: FieldSchema) -> Any:
    values = schema.enum or []

    if values and all(isinstance(v, str) for v in values):
        cleaned = tuple(dict.fromkeys(_SURROUNDING_QUOTES.sub("", v) for v in values))
        return Literal[cleaned]

    if not values:
        return Annotated[Any, AfterValidator(_reject_everything)]

    if any(isinstance(v, (dict, list)) for v in values):
        raise SpecCompileError(f"enum literals must be scalars, got {values!r}")
    return Annotated[Any, AfterValidator(_exact_member(values))]


def _string_annotation(schema: FieldSchema) -> Any:
    if schema.format == "json":
        return dict[str, Any]

    metadata: list[Any] = []

    bounds = {}
    if schema.minimum is not None:
        bounds["min_length"] = int(schema.minimum)
    if schema.maximum is not None:
        bounds["max_length"] = int(schema.maximum)
    if bounds:
        metadata.append(StringConstraints(**bounds))

    if schema.format == "email":
        metadata.append(AfterValidator(_check_email))
    elif schema.format == "uri":
        metadata.append(AfterValidator(_check_uri))
    elif schema.pattern:
        metadata.append(AfterValidator(_pattern_check(schema.pattern)))

    if not metadata:
        return str
    return Annotated[(str, *metadata)]


def _number_annotation(schema: FieldSchema) -> Any:
    bounds = Field(ge=schema.minimum, le=schema.maximum)
    integer = Annotated[int, Strict(), bounds]
    if schema.kind is SchemaKind.INTEGER:
        return integer
    # An integer stays an integer; 5 is not sent as 5.0.
    return integer | Annotated[float, Strict(), bounds]


def _boolean_annotation(schema: FieldSchema) -> Any:
    return Annotated[bool, Strict()]


def _array_annotation(schema: FieldSchema) -> Any:
    if schema.items is None:
        return list[Any]
    return list[_annotation_for(schema.items)]


def _object_annotation(schema: FieldSchema) -> Any:
    if not schema.properties:
        return dict[str, Any]

    required = set(schema.required or [])
    fields: dict[str, Any] = {}

    # Property names become aliases: they can be anything ("secret-name",
    # "model_config", "_id"), the generated attribute names can't.
    for index, (prop_name, prop_schema) in enumerate(schema.properties.items()):
        annotation = _annotation_for(prop_schema)
        if prop_name in required:
            fields[f"field_{index}"] = (annotation, Field(alias=prop_name))
        else:
            fields[f"field_{index}"] = (annotation, Field(default=None, alias=prop_name))

    return create_model("OpenObject", __config__=_OPEN_OBJECT, **fields)


def _any_annotation(schema: FieldSchema) -> Any:
    return Any


_BUILDERS: dict[SchemaKind, Callable[[FieldSchema], Any]] = {
    SchemaKind.ENUM: _enum_annotation,
    SchemaKind.STRING: _string_annotation,
    SchemaKind.NUMBER: _number_annotation,
    SchemaKind.INTEGER: _number_annotation,
    SchemaKind.BOOLEAN: _boolean_annotation,
    SchemaKind.ARRAY: _array_annotation,
    SchemaKind.OBJECT: _object_annotation,
    SchemaKind.ANY: _any_annotation,
}


# ---------------------------------------------------------------------------
# Leaf checks
# ---------------------------------------------------------------------------


def _reject_everything(value: Any) -> Any:
    raise ValueError("no value is allowed for an empty enum")


def _exact_member(values: list[Any]) -> Callable[[Any], Any]:
    """Membership by value and type: True is not 1, 1.0 is not 1."""

    def check(value: Any) -> Any:
        if not any(type(value) is type(v) and value == v for v in values):
            raise ValueError(f"value must be one of {values!r}")
        return value

    return check


def _check_email(value: str) -> str:
    try:
        return _EMAIL.validate_python(value)
    except ValidationError:
        raise ValueError(f"invalid email address: {value!r}")


def _check_uri(value: str) -> str:
    try:
        _URI.validate_python(value)
    except ValidationError:
        raise ValueError(f"invalid URI: {value!r}")
    # AnyUrl normalizes (trailing slashes, case); the caller's text is kept.
    return value


def _pattern_check(pattern: str) -> Callable[[str], str]:
    try:
        compiled = re.compile(pattern)
    except re.error as e:
        raise SpecCompileError(f"invalid pattern {pattern!r}: {e}")

    def check(value: str) -> str:
        if not compiled.search(value):
            raise ValueError(f"value does not match pattern {pattern!r}")
        return value

    return check
