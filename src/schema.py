"""
Configuration Schema - Field declarations and record validation.

Each resource kind declares its configuration keys as a Schema. The schema
renders to JSON Schema (Draft 7) for validation and to a pydantic model so
that payload builders work with a typed configuration object instead of a
loose dict.
"""

import copy
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple, Type, Union

from jsonschema import Draft7Validator
from jsonschema import ValidationError as JSONSchemaValidationError
from pydantic import BaseModel, ConfigDict, create_model
from pydantic import Field as ModelField

from errors import ValidationError

logger = logging.getLogger(__name__)


class FieldType(Enum):
    """Value types a configuration field can hold."""

    STRING = "string"
    INT = "integer"
    BOOL = "boolean"
    FLOAT = "number"
    MAP = "map"
    LIST = "list"


_ZERO_VALUES: Dict[FieldType, Any] = {
    FieldType.STRING: "",
    FieldType.INT: 0,
    FieldType.BOOL: False,
    FieldType.FLOAT: 0.0,
    FieldType.MAP: {},
    FieldType.LIST: [],
}

_PYTHON_TYPES: Dict[FieldType, Any] = {
    FieldType.STRING: str,
    FieldType.INT: int,
    FieldType.BOOL: bool,
    FieldType.FLOAT: float,
    FieldType.MAP: Dict[str, str],
}


@dataclass
class Field:
    """A single declared configuration key."""

    name: str
    type: FieldType
    required: bool = False
    default: Any = None
    computed: bool = False
    description: str = ""
    choices: Optional[List[Any]] = None
    minimum: Optional[float] = None
    maximum: Optional[float] = None
    max_items: Optional[int] = None
    # List element: a scalar FieldType or a nested Schema
    elem: Optional[Union[FieldType, "Schema"]] = None

    def zero_value(self) -> Any:
        """Return the declared default, or the type's zero value (a fresh copy)."""
        if self.default is not None:
            return copy.deepcopy(self.default)
        return copy.deepcopy(_ZERO_VALUES[self.type])

    def to_json_schema(self) -> Dict[str, Any]:
        """Render this field as a JSON Schema property."""
        if self.type == FieldType.MAP:
            prop: Dict[str, Any] = {
                "type": "object",
                "additionalProperties": {"type": "string"},
            }
        elif self.type == FieldType.LIST:
            prop = {"type": "array", "items": _elem_json_schema(self.elem)}
            if self.max_items is not None:
                prop["maxItems"] = self.max_items
        else:
            prop = {"type": self.type.value}

        if self.choices is not None:
            prop["enum"] = list(self.choices)
        if self.minimum is not None:
            prop["minimum"] = self.minimum
        if self.maximum is not None:
            prop["maximum"] = self.maximum
        if self.description:
            prop["description"] = self.description
        if self.computed:
            prop["readOnly"] = True
        return prop

    def python_type(self) -> Any:
        """Return the annotation used for this field in the typed model."""
        if self.type != FieldType.LIST:
            return _PYTHON_TYPES[self.type]
        if isinstance(self.elem, Schema):
            return List[self.elem.model()]
        return List[_PYTHON_TYPES[self.elem or FieldType.STRING]]


def _elem_json_schema(elem: Optional[Union[FieldType, "Schema"]]) -> Dict[str, Any]:
    if isinstance(elem, Schema):
        return elem.to_json_schema()
    return {"type": (elem or FieldType.STRING).value}


def validate_record_against_schema(
    record: Dict[str, Any], schema: Dict[str, Any]
) -> Tuple[bool, Optional[str]]:
    """
    Validate a configuration record against a JSON Schema.

    Args:
        record: Flat configuration record to validate
        schema: The Draft 7 JSON Schema to validate against

    Returns:
        Tuple of (is_valid, error_message)
    """
    validator = Draft7Validator(schema)
    errors = sorted(
        validator.iter_errors(record),
        key=lambda e: [str(p) for p in e.absolute_path],
    )

    if not errors:
        return True, None

    error_messages = []
    for error in errors:
        path = ".".join(str(p) for p in error.absolute_path) or "(root)"
        error_messages.append(f"{path}: {error.message}")

    return False, "; ".join(error_messages)


class Schema:
    """
    Ordered set of declared configuration fields.

    The schema is the single source for what keys a configuration record may
    hold, their zero values, their validation rules and their typed form.
    """

    def __init__(self, fields: List[Field], title: str = "Config"):
        self.title = title
        self._fields: Dict[str, Field] = {}
        for f in fields:
            if f.name in self._fields:
                raise ValueError(f"Duplicate field '{f.name}' in schema {title}")
            self._fields[f.name] = f
        self._model: Optional[Type[BaseModel]] = None

        try:
            Draft7Validator.check_schema(self.to_json_schema())
        except Exception as e:
            raise ValueError(f"Invalid schema {title}: {e}") from e

    def __iter__(self):
        return iter(self._fields.values())

    def has(self, name: str) -> bool:
        return name in self._fields

    def field(self, name: str) -> Field:
        return self._fields[name]

    def keys(self) -> List[str]:
        return list(self._fields)

    def computed_keys(self) -> List[str]:
        return [f.name for f in self._fields.values() if f.computed]

    def zero_values(self) -> Dict[str, Any]:
        """Return a record holding every field's zero value."""
        return {f.name: f.zero_value() for f in self._fields.values()}

    def to_json_schema(self) -> Dict[str, Any]:
        """Render the schema as a Draft 7 JSON Schema object."""
        return {
            "type": "object",
            "properties": {
                f.name: f.to_json_schema() for f in self._fields.values()
            },
            "required": [
                f.name
                for f in self._fields.values()
                if f.required and not f.computed
            ],
            "additionalProperties": False,
        }

    def validate(self, record: Dict[str, Any]) -> None:
        """
        Validate a configuration record.

        Raises:
            ValidationError: Listing every violation as ``path: message``.
        """
        try:
            is_valid, error = validate_record_against_schema(
                record, self.to_json_schema()
            )
        except JSONSchemaValidationError as e:
            raise ValidationError(f"Validation error: {e.message}") from e

        if not is_valid:
            logger.debug(f"{self.title} validation failed: {error}")
            raise ValidationError(error)

    def model(self) -> Type[BaseModel]:
        """Return the pydantic model generated from this schema."""
        if self._model is None:
            definitions: Dict[str, Any] = {}
            for f in self._fields.values():
                if f.required and not f.computed:
                    definitions[f.name] = (f.python_type(), ...)
                else:
                    definitions[f.name] = (
                        f.python_type(),
                        ModelField(default_factory=f.zero_value),
                    )
            self._model = create_model(
                self.title,
                __config__=ConfigDict(extra="forbid"),
                **definitions,
            )
        return self._model

    def typed(self, record: Dict[str, Any]) -> BaseModel:
        """Validate a record and return it as a typed configuration object."""
        self.validate(record)
        return self.model()(**record)

    def normalize(self, record: Dict[str, Any]) -> Dict[str, Any]:
        """
        Normalize nested list elements against their element schema.

        Each element gets every declared key: missing or None values become
        element zero values, undeclared keys are dropped. Top-level keys are
        left as given.
        """
        normalized = dict(record)
        for f in self._fields.values():
            if not isinstance(f.elem, Schema):
                continue
            items = normalized.get(f.name)
            if isinstance(items, list):
                normalized[f.name] = [
                    f.elem.fill(item) if isinstance(item, dict) else item
                    for item in items
                ]
        return normalized

    def fill(self, record: Dict[str, Any]) -> Dict[str, Any]:
        """Return a record with every declared key, zero-filled where unset."""
        filled = self.zero_values()
        for key, value in self.normalize(record).items():
            if self.has(key) and value is not None:
                filled[key] = value
        return filled
