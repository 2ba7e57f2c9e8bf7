"""Translate JSON Schema tool inputs into validator trees.

Tool servers describe each tool's input as a JSON Schema document. The
translator turns that document into a tree of frozen validator nodes that
mirrors its shape:

    {"type": "object",
     "properties": {"query": {"type": "string"},
                    "limit": {"type": "number", "enum": [10, 50]}},
     "required": ["query"]}

becomes

    ObjectValidator(
        fields={"query": StringValidator(),
                "limit": UnionValidator((LiteralValidator(10), LiteralValidator(50)))},
        required=frozenset({"query"}),
        additional=Extra.FORBID,
    )

Validators check and coerce caller arguments before a remote call. Only
structural shape is checked; formats, ranges and patterns are ignored.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, ClassVar

from mcp_bridge.errors import ArgumentValidationError, TranslationError


def _type_name(value: Any) -> str:
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "boolean"
    if isinstance(value, (int, float)):
        return "number"
    if isinstance(value, str):
        return "string"
    if isinstance(value, (list, tuple)):
        return "array"
    if isinstance(value, Mapping):
        return "object"
    return type(value).__name__


def _with_description(schema: dict[str, Any], description: str) -> dict[str, Any]:
    if description:
        schema["description"] = description
    return schema


class Extra(str, Enum):
    """Policy for object fields that are not declared in ``properties``."""

    FORBID = "forbid"
    ALLOW = "allow"


@dataclass(frozen=True)
class Validator:
    """Base class for validator nodes."""

    kind: ClassVar[str] = "any"

    description: str = field(default="", kw_only=True)

    def validate(self, value: Any, path: str = "$") -> Any:
        """Check value against this node and return the coerced value.

        Raises:
            ArgumentValidationError: If the value does not match.
        """
        raise NotImplementedError

    def to_json_schema(self) -> dict[str, Any]:
        """Render this node back to a JSON Schema dict."""
        raise NotImplementedError

    @property
    def type_hint(self) -> str:
        """Python type string used in rendered signatures."""
        raise NotImplementedError


@dataclass(frozen=True)
class AnyValidator(Validator):
    """Accepts anything. Used where the schema is missing or unsupported."""

    kind: ClassVar[str] = "any"

    def validate(self, value: Any, path: str = "$") -> Any:
        return value

    def to_json_schema(self) -> dict[str, Any]:
        return _with_description({}, self.description)

    @property
    def type_hint(self) -> str:
        return "Any"


@dataclass(frozen=True)
class StringValidator(Validator):
    """A string, optionally restricted to a set of allowed values."""

    kind: ClassVar[str] = "string"

    enum: tuple[Any, ...] = ()

    def validate(self, value: Any, path: str = "$") -> Any:
        if not isinstance(value, str):
            raise ArgumentValidationError(path, f"expected string, got {_type_name(value)}")
        if self.enum and value not in self.enum:
            allowed = ", ".join(repr(v) for v in self.enum)
            raise ArgumentValidationError(path, f"{value!r} is not one of {allowed}")
        return value

    def to_json_schema(self) -> dict[str, Any]:
        schema: dict[str, Any] = {"type": "string"}
        if self.enum:
            schema["enum"] = list(self.enum)
        return _with_description(schema, self.description)

    @property
    def type_hint(self) -> str:
        if self.enum:
            return f"Literal[{', '.join(repr(v) for v in self.enum)}]"
        return "str"


@dataclass(frozen=True)
class NumberValidator(Validator):
    """A JSON number. ``integer`` narrows it to whole numbers."""

    kind: ClassVar[str] = "number"

    integer: bool = False

    def validate(self, value: Any, path: str = "$") -> Any:
        # bool is an int subclass but never a JSON number
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            expected = "integer" if self.integer else "number"
            raise ArgumentValidationError(path, f"expected {expected}, got {_type_name(value)}")
        if self.integer and not isinstance(value, int):
            if not value.is_integer():
                raise ArgumentValidationError(path, f"expected integer, got {value!r}")
            return int(value)
        return value

    def to_json_schema(self) -> dict[str, Any]:
        schema = {"type": "integer" if self.integer else "number"}
        return _with_description(schema, self.description)

    @property
    def type_hint(self) -> str:
        return "int" if self.integer else "float"


@dataclass(frozen=True)
class LiteralValidator(Validator):
    """Exactly one allowed value."""

    kind: ClassVar[str] = "literal"

    value: Any = None

    def validate(self, value: Any, path: str = "$") -> Any:
        # 1 == True in Python; a boolean never matches a numeric literal
        if isinstance(value, bool) != isinstance(self.value, bool) or value != self.value:
            raise ArgumentValidationError(path, f"expected {self.value!r}, got {value!r}")
        return value

    def to_json_schema(self) -> dict[str, Any]:
        return _with_description({"const": self.value}, self.description)

    @property
    def type_hint(self) -> str:
        return f"Literal[{self.value!r}]"


@dataclass(frozen=True)
class UnionValidator(Validator):
    """Accepts a value matching any of the options, tried in order."""

    kind: ClassVar[str] = "union"

    options: tuple[Validator, ...] = ()

    def validate(self, value: Any, path: str = "$") -> Any:
        for option in self.options:
            try:
                return option.validate(value, path)
            except ArgumentValidationError:
                continue
        raise ArgumentValidationError(path, f"{value!r} matches none of {self.type_hint}")

    def to_json_schema(self) -> dict[str, Any]:
        schema = {"anyOf": [option.to_json_schema() for option in self.options]}
        return _with_description(schema, self.description)

    @property
    def type_hint(self) -> str:
        if self.options and all(isinstance(o, LiteralValidator) for o in self.options):
            return f"Literal[{', '.join(repr(o.value) for o in self.options)}]"
        return " | ".join(o.type_hint for o in self.options)


@dataclass(frozen=True)
class BooleanValidator(Validator):
    kind: ClassVar[str] = "boolean"

    def validate(self, value: Any, path: str = "$") -> Any:
        if not isinstance(value, bool):
            raise ArgumentValidationError(path, f"expected boolean, got {_type_name(value)}")
        return value

    def to_json_schema(self) -> dict[str, Any]:
        return _with_description({"type": "boolean"}, self.description)

    @property
    def type_hint(self) -> str:
        return "bool"


@dataclass(frozen=True)
class ArrayValidator(Validator):
    """A list whose elements all match ``items``."""

    kind: ClassVar[str] = "array"

    items: Validator = field(default_factory=AnyValidator)

    def validate(self, value: Any, path: str = "$") -> Any:
        if not isinstance(value, (list, tuple)):
            raise ArgumentValidationError(path, f"expected array, got {_type_name(value)}")
        return [self.items.validate(item, f"{path}[{i}]") for i, item in enumerate(value)]

    def to_json_schema(self) -> dict[str, Any]:
        schema = {"type": "array", "items": self.items.to_json_schema()}
        return _with_description(schema, self.description)

    @property
    def type_hint(self) -> str:
        return f"list[{self.items.type_hint}]"


@dataclass(frozen=True)
class ObjectValidator(Validator):
    """A mapping with declared fields.

    Fields missing from ``required`` are optional. Undeclared fields are
    handled by ``additional``: forbidden, passed through untouched, or
    checked against a validator.
    """

    kind: ClassVar[str] = "object"

    fields: dict[str, Validator] = field(default_factory=dict)
    required: frozenset[str] = field(default_factory=frozenset)
    additional: Extra | Validator = Extra.FORBID

    def is_required(self, name: str) -> bool:
        return name in self.required

    def validate(self, value: Any, path: str = "$") -> Any:
        if not isinstance(value, Mapping):
            raise ArgumentValidationError(path, f"expected object, got {_type_name(value)}")

        result: dict[str, Any] = {}
        for name, validator in self.fields.items():
            field_path = f"{path}.{name}"
            present = name in value and value[name] is not None
            if not present:
                if self.is_required(name):
                    if name in value:
                        raise ArgumentValidationError(field_path, "required field is null")
                    raise ArgumentValidationError(field_path, "required field is missing")
                continue
            result[name] = validator.validate(value[name], field_path)

        for key in value:
            if key in self.fields:
                continue
            if self.additional is Extra.FORBID:
                raise ArgumentValidationError(f"{path}.{key}", "unexpected field")
            if self.additional is Extra.ALLOW:
                result[key] = value[key]
            else:
                result[key] = self.additional.validate(value[key], f"{path}.{key}")

        return result

    def to_json_schema(self) -> dict[str, Any]:
        schema: dict[str, Any] = {"type": "object"}
        if self.fields:
            schema["properties"] = {k: v.to_json_schema() for k, v in self.fields.items()}
        required = [name for name in self.fields if name in self.required]
        if required:
            schema["required"] = required
        if self.additional is Extra.FORBID:
            schema["additionalProperties"] = False
        elif self.additional is Extra.ALLOW:
            schema["additionalProperties"] = True
        else:
            schema["additionalProperties"] = self.additional.to_json_schema()
        return _with_description(schema, self.description)

    @property
    def type_hint(self) -> str:
        if isinstance(self.additional, Validator) and not self.fields:
            return f"dict[str, {self.additional.type_hint}]"
        return "dict[str, Any]"


def _description(node: Mapping[str, Any]) -> str:
    description = node.get("description")
    return description if isinstance(description, str) else ""


def _enum_values(node: Mapping[str, Any]) -> tuple[Any, ...]:
    enum = node.get("enum")
    if isinstance(enum, (list, tuple)) and enum:
        return tuple(enum)
    return ()


def _additional_policy(value: Any) -> Extra | Validator | None:
    """Map ``additionalProperties`` to a policy, None when unusable."""
    if value is True:
        return Extra.ALLOW
    if isinstance(value, Mapping):
        return translate_schema(value)
    return None


def _object_with_fields(
    node: Mapping[str, Any],
    properties: Mapping[str, Any],
    description: str,
) -> ObjectValidator:
    additional = _additional_policy(node.get("additionalProperties"))
    required_names = node.get("required") or []
    if not isinstance(required_names, (list, tuple)):
        required_names = []

    fields = {name: translate_schema(prop) for name, prop in properties.items()}
    required = frozenset(name for name in required_names if name in fields)

    return ObjectValidator(
        fields=fields,
        required=required,
        additional=additional if additional is not None else Extra.FORBID,
        description=description,
    )


def _translate_object(node: Mapping[str, Any], description: str) -> Validator:
    properties = node.get("properties")
    if isinstance(properties, Mapping):
        return _object_with_fields(node, properties, description)

    additional = _additional_policy(node.get("additionalProperties"))
    if additional is None:
        return AnyValidator(description=description)
    return ObjectValidator(additional=additional, description=description)


def translate_schema(node: Any) -> Validator:
    """Translate one JSON Schema node, recursively.

    Unknown or unsupported shapes become AnyValidator. Never raises and
    never mutates ``node``.
    """
    if not isinstance(node, Mapping):
        return AnyValidator()

    description = _description(node)
    kind = node.get("type")

    if kind == "string":
        return StringValidator(enum=_enum_values(node), description=description)

    if kind in ("number", "integer"):
        enum = _enum_values(node)
        if len(enum) == 1:
            return LiteralValidator(value=enum[0], description=description)
        if enum:
            literals = tuple(LiteralValidator(value=v) for v in enum)
            return UnionValidator(options=literals, description=description)
        return NumberValidator(integer=kind == "integer", description=description)

    if kind == "boolean":
        return BooleanValidator(description=description)

    if kind == "array":
        items = node.get("items")
        if isinstance(items, Mapping):
            return ArrayValidator(items=translate_schema(items), description=description)
        return ArrayValidator(items=AnyValidator(), description=description)

    if kind == "object":
        return _translate_object(node, description)

    return AnyValidator(description=description)


def translate_input_schema(schema: Any, tool_name: str | None = None) -> ObjectValidator:
    """Translate a tool's root input schema.

    The root must be ``{"type": "object", "properties": {...}}`` with at
    least one property.

    Raises:
        TranslationError: If the root is not an object schema with properties.
    """
    if not isinstance(schema, Mapping):
        raise TranslationError(
            f"expected a schema object, got {type(schema).__name__}", tool_name
        )
    if schema.get("type") != "object":
        raise TranslationError(
            f"root type must be 'object', got {schema.get('type')!r}", tool_name
        )
    properties = schema.get("properties")
    if not isinstance(properties, Mapping) or not properties:
        raise TranslationError("root schema has no properties", tool_name)

    return _object_with_fields(schema, properties, _description(schema))
