# schema.py
# Descriptor model for function parameters and return values.
#
# A descriptor is one of four closed variants, discriminated by `kind`:
#   PrimitiveField  string | number | boolean
#   EnumField       fixed set of string values
#   ArrayField      homogeneous items (primitive, enum or object)
#   ObjectField     ordered sub-fields of any kind
#
# Each variant knows how to describe itself for a tool schema and how to
# validate a call value in two stages:
#   coerce()  absorbs boundary format variance ("42" -> 42, "true" -> True)
#   check()   strict pydantic validation of the coerced value

import json
import math
from typing import Annotated, Any, Literal, Optional, Union

from pydantic import (
    AfterValidator,
    BaseModel,
    Field,
    StrictBool,
    StrictStr,
    TypeAdapter,
    ValidationError,
)

from toolflow.errors import (
    DescriptorCycleError,
    InvalidArray,
    InvalidBoolean,
    InvalidEnumValue,
    InvalidNumber,
    ParameterValidationError,
)


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------


def _strict_number(value: Any) -> Any:
    # bool is an int subclass; it is never a number here.
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValueError("Input should be a valid number")
    return value


def _parse_number(text: str) -> int | float:
    stripped = text.strip()
    # int() and float() accept digit separators ("1_000"); wire numbers do not.
    if "_" in stripped:
        raise ValueError(f"invalid number {text!r}")
    try:
        return int(stripped)
    except ValueError:
        pass
    parsed = float(stripped)
    if not math.isfinite(parsed):
        raise ValueError(f"non-finite number {text!r}")
    return parsed


def _reason(error: dict[str, Any]) -> str:
    original = (error.get("ctx") or {}).get("error")
    if error.get("type") == "value_error" and original is not None:
        return str(original)
    return error["msg"]


def to_parameter_error(
    exc: ValidationError, names: list[str] | None = None, root: str | None = None
) -> ParameterValidationError:
    """
    Collapse a pydantic ValidationError into a ParameterValidationError.

    `names` maps leading tuple indices to parameter names; `root` prefixes the
    location when validating a single named value.
    """
    error = exc.errors()[0]
    original = (error.get("ctx") or {}).get("error")
    if isinstance(original, ParameterValidationError):
        return original

    loc = list(error["loc"])
    if names is not None and loc and isinstance(loc[0], int) and loc[0] < len(names):
        loc[0] = names[loc[0]]
    if root is not None:
        loc.insert(0, root)
    field = ".".join(str(part) for part in loc) or "value"
    return ParameterValidationError(field, _reason(error))


# ---------------------------------------------------------------------------
# Descriptor variants
# ---------------------------------------------------------------------------


class _BaseDescriptor(BaseModel):
    name: str = Field(..., description="Parameter or field name.")
    description: str = Field(default="", description="Human-readable meaning.")
    required: bool = Field(default=True)

    def get_name(self) -> str:
        return self.name

    def get_required(self) -> bool:
        return self.required

    def coerce(self, value: Any) -> Any:
        return value

    def annotation(self) -> Any:
        raise NotImplementedError

    def check(self, value: Any) -> Any:
        """Strictly validate an already-coerced value."""
        try:
            return TypeAdapter(self.annotation()).validate_python(value)
        except ValidationError as exc:
            raise to_parameter_error(exc, root=self.name) from exc

    def validate_value(self, value: Any) -> Any:
        """Coerce then strictly validate. Raises ParameterValidationError."""
        return self.check(self.coerce(value))


class PrimitiveField(_BaseDescriptor):
    """A string, number or boolean value."""

    kind: Literal["string", "number", "boolean"]

    def describe(self) -> dict[str, Any]:
        return {"type": self.kind, "description": self.description}

    def coerce(self, value: Any) -> Any:
        if not isinstance(value, str):
            return value
        if self.kind == "number":
            try:
                return _parse_number(value)
            except ValueError:
                raise InvalidNumber(self.name) from None
        if self.kind == "boolean":
            if value == "true":
                return True
            if value == "false":
                return False
            raise InvalidBoolean(self.name)
        return value

    def annotation(self) -> Any:
        if self.kind == "number":
            return Annotated[Any, AfterValidator(_strict_number)]
        if self.kind == "boolean":
            return StrictBool
        return StrictStr


class EnumField(_BaseDescriptor):
    """A string restricted to an ordered, non-empty set of values."""

    kind: Literal["enum"] = "enum"
    values: list[str] = Field(..., min_length=1)

    def describe(self) -> dict[str, Any]:
        return {"type": "string", "description": self.description, "enum": list(self.values)}

    def coerce(self, value: Any) -> Any:
        if value not in self.values:
            raise InvalidEnumValue(
                self.name,
                f"Invalid enum value {value!r}. Expected one of: {', '.join(self.values)}",
            )
        return value

    def annotation(self) -> Any:
        return Literal[tuple(self.values)]


class ObjectField(_BaseDescriptor):
    """
    A named, ordered group of sub-fields.

    Object values are not deep-validated at the call boundary. Only enum and
    array sub-fields that are present in a mapping value are checked.
    """

    kind: Literal["object"] = "object"
    fields: list["Descriptor"] = Field(default_factory=list)

    def field(self, descriptor: "Descriptor") -> "ObjectField":
        if not isinstance(descriptor, (PrimitiveField, EnumField, ArrayField, ObjectField)):
            raise TypeError(f"Unsupported descriptor: {descriptor!r}")
        if _reaches(descriptor, self):
            raise DescriptorCycleError(
                f"Object descriptor {self.name!r} cannot contain itself "
                f"(via field {descriptor.name!r})."
            )
        self.fields.append(descriptor)
        return self

    def get_fields(self) -> list["Descriptor"]:
        return list(self.fields)

    def field_names(self) -> list[str]:
        return [f.name for f in self.fields]

    def describe(self) -> dict[str, Any]:
        return {
            "type": "object",
            "description": self.description,
            "properties": {f.name: f.describe() for f in self.fields},
            "required": [f.name for f in self.fields if f.required],
        }

    def _check_members(self, value: Any) -> Any:
        if not isinstance(value, dict):
            return value
        checked = dict(value)
        for sub in self.fields:
            if sub.kind not in ("enum", "array") or sub.name not in checked:
                continue
            try:
                checked[sub.name] = sub.validate_value(checked[sub.name])
            except ParameterValidationError as exc:
                raise ParameterValidationError(f"{self.name}.{exc.field}", exc.reason) from exc
        return checked

    def annotation(self) -> Any:
        return Annotated[Any, AfterValidator(self._check_members)]


class ArrayField(_BaseDescriptor):
    """A homogeneous list. Accepts a JSON-encoded list string at the boundary."""

    kind: Literal["array"] = "array"
    item_type: Annotated[
        Union[PrimitiveField, EnumField, ObjectField], Field(discriminator="kind")
    ]

    def get_item_type(self) -> "Descriptor":
        return self.item_type

    def describe(self) -> dict[str, Any]:
        return {
            "type": "array",
            "description": self.description,
            "items": self.item_type.describe(),
        }

    def coerce(self, value: Any) -> Any:
        if not isinstance(value, str):
            return value
        try:
            parsed = json.loads(value)
        except (json.JSONDecodeError, RecursionError):
            raise InvalidArray(self.name) from None
        if not isinstance(parsed, list):
            raise InvalidArray(self.name)
        return parsed

    def annotation(self) -> Any:
        return list[self.item_type.annotation()]


Descriptor = Annotated[
    Union[PrimitiveField, EnumField, ArrayField, ObjectField],
    Field(discriminator="kind"),
]

ObjectField.model_rebuild()
ArrayField.model_rebuild()


def _reaches(start: Any, target: ObjectField) -> bool:
    """True if `target` is reachable from `start` (identity, not equality)."""
    stack = [start]
    seen: set[int] = set()
    while stack:
        node = stack.pop()
        if node is target:
            return True
        if id(node) in seen:
            continue
        seen.add(id(node))
        if isinstance(node, ObjectField):
            stack.extend(node.fields)
        elif isinstance(node, ArrayField):
            stack.append(node.item_type)
    return False


# ---------------------------------------------------------------------------
# Parameter tuples
# ---------------------------------------------------------------------------


def build_tuple_validator(params: list[Any]) -> TypeAdapter:
    """Strict validator for a full positional argument tuple."""
    annotations = [
        p.annotation() if p.required else Optional[p.annotation()] for p in params
    ]
    if not annotations:
        raise ValueError("A tuple validator needs at least one parameter.")
    return TypeAdapter(tuple[tuple(annotations)])


def descriptor_from_dict(data: dict[str, Any]) -> Any:
    """Build a descriptor from its serialized form (remote registrations)."""
    return TypeAdapter(Descriptor).validate_python(data)
