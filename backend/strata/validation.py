"""
Strata Backend: Validation Gate
===============================

What:  Validates raw request data against a declared schema before any business
       logic runs.
How:   Schemas are plain data (FieldSpec / Schema models, loadable from dicts or
       JSON). Each Schema compiles itself once into a pydantic model; `validate()`
       runs that model and either returns a ValidatedInput or raises a
       ValidationError listing every violated field.
Who:   Called by the Dispatcher for a route's path, query and body schemas.

Example:
    CREATE_USER = Schema.model_validate({
        "name": "CreateUser",
        "fields": {
            "name": {"type": "string", "min_length": 1},
            "email": {"type": "string", "format": "email"},
        },
    })
    data = validate(CREATE_USER, {"name": "Ada", "email": "ada@x.com"})
    data["name"]  # "Ada"

ValidatedInput has no public constructor: the only way to get one is a
successful `validate()` call, so holding one means the data satisfied its schema.
"""

import copy
import re
from types import MappingProxyType
from typing import Annotated, Any, Dict, Iterator, List, Literal, Mapping, Optional, Type

from pydantic import (
    AfterValidator,
    BaseModel,
    ConfigDict,
    Field,
    PrivateAttr,
    create_model,
    model_validator,
)
from pydantic import ValidationError as PydanticValidationError

from strata.exceptions import ValidationError

# ── Constraint Vocabulary ─────────────────────────────────────────────────
FieldType = Literal["string", "integer", "number", "boolean", "object", "array"]
FieldFormat = Literal["email", "uuid"]

_PYTHON_TYPES: Dict[str, type] = {
    "string": str,
    "integer": int,
    "number": float,
    "boolean": bool,
    "object": dict,
    "array": list,
}

_FORMAT_PATTERNS = {
    "email": re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$"),
    # Dashed UUIDs and 32-char hex ids are both accepted
    "uuid": re.compile(
        r"^[0-9a-fA-F]{8}-?[0-9a-fA-F]{4}-?[0-9a-fA-F]{4}-?[0-9a-fA-F]{4}-?[0-9a-fA-F]{12}$"
    ),
}

_FORMAT_MESSAGES = {
    "email": "must be a valid email address",
    "uuid": "must be a valid UUID",
}

# Key used in error details for problems that are not tied to one field
BODY_KEY = "body"


class FieldSpec(BaseModel):
    """
    Declarative constraints for one field.

    Constraints are checked for consistency when the FieldSpec is declared, so a
    schema asking for `pattern` on an integer fails at import time rather than
    at request time.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    type: FieldType = "string"
    required: bool = True
    nullable: bool = False
    min_length: Optional[int] = Field(default=None, ge=0)
    max_length: Optional[int] = Field(default=None, ge=0)
    pattern: Optional[str] = None
    format: Optional[FieldFormat] = None
    minimum: Optional[float] = None
    maximum: Optional[float] = None
    choices: Optional[List[Any]] = None
    default: Any = None

    @model_validator(mode="after")
    def check_constraints(self) -> "FieldSpec":
        if self.type != "string" and (self.pattern is not None or self.format is not None):
            raise ValueError(f"'pattern' and 'format' only apply to strings, not {self.type}")
        if self.type not in ("string", "array", "object") and (
            self.min_length is not None or self.max_length is not None
        ):
            raise ValueError(f"length constraints do not apply to {self.type}")
        if self.type not in ("integer", "number") and (
            self.minimum is not None or self.maximum is not None
        ):
            raise ValueError(f"'minimum'/'maximum' do not apply to {self.type}")
        if (
            self.min_length is not None
            and self.max_length is not None
            and self.min_length > self.max_length
        ):
            raise ValueError("min_length is greater than max_length")
        if self.minimum is not None and self.maximum is not None and self.minimum > self.maximum:
            raise ValueError("minimum is greater than maximum")
        return self

    @property
    def has_default(self) -> bool:
        return "default" in self.model_fields_set

    def annotation(self) -> Any:
        """Build the pydantic annotation that enforces this field."""
        constraints: Dict[str, Any] = {}
        if self.min_length is not None:
            constraints["min_length"] = self.min_length
        if self.max_length is not None:
            constraints["max_length"] = self.max_length
        if self.pattern is not None:
            constraints["pattern"] = self.pattern
        if self.minimum is not None:
            constraints["ge"] = self.minimum
        if self.maximum is not None:
            constraints["le"] = self.maximum

        metadata: List[Any] = [Field(**constraints)]
        if self.format is not None:
            metadata.append(AfterValidator(_format_checker(self.format)))
        if self.choices is not None:
            metadata.append(AfterValidator(_choices_checker(self.choices)))

        annotated = Annotated[(_PYTHON_TYPES[self.type], *metadata)]
        if self.nullable:
            return Optional[annotated]
        return annotated


def _format_checker(fmt: str):
    pattern = _FORMAT_PATTERNS[fmt]
    message = _FORMAT_MESSAGES[fmt]

    def check(value: str) -> str:
        if not pattern.match(value):
            raise ValueError(message)
        return value

    return check


def _choices_checker(choices: List[Any]):
    def check(value: Any) -> Any:
        if value not in choices:
            raise ValueError(f"must be one of: {', '.join(map(str, choices))}")
        return value

    return check


class Schema(BaseModel):
    """
    A named set of field specs.

    Attributes:
        name:        Identifier used in logs and ValidatedInput.schema_name
        fields:      Field name → FieldSpec
        allow_extra: When False (default) unknown fields are violations;
                     when True they are dropped from the validated data
        strict:      When True (default) values must already have the declared
                     type; path/query schemas set False so "5" becomes 5
        min_fields:  Minimum number of declared fields that must be present
                     (PATCH-style "at least one" bodies)
    """

    model_config = ConfigDict(extra="forbid")

    name: str
    fields: Dict[str, FieldSpec]
    allow_extra: bool = False
    strict: bool = True
    min_fields: int = Field(default=0, ge=0)

    _model: Type[BaseModel] = PrivateAttr()

    @model_validator(mode="after")
    def check_min_fields(self) -> "Schema":
        if self.min_fields > len(self.fields):
            raise ValueError("min_fields exceeds the number of declared fields")
        return self

    def model_post_init(self, __context: Any) -> None:
        self._model = self._compile()

    def _compile(self) -> Type[BaseModel]:
        # Fields are registered under positional names with the declared name as
        # alias, so declared names such as "json" or "copy" cannot clash with
        # BaseModel attributes.
        definitions: Dict[str, Any] = {}
        for index, (field_name, spec) in enumerate(self.fields.items()):
            default = ... if spec.required else (spec.default if spec.has_default else None)
            definitions[f"field_{index}"] = (
                spec.annotation(),
                Field(default=default, alias=field_name),
            )
        model_name = re.sub(r"\W", "_", self.name) or "Input"
        return create_model(
            model_name,
            __config__=ConfigDict(
                strict=self.strict,
                extra="ignore" if self.allow_extra else "forbid",
                populate_by_name=False,
            ),
            **definitions,
        )


_GATE_TOKEN = object()


class ValidatedInput(Mapping[str, Any]):
    """
    Immutable mapping of data that satisfied a schema.

    Only `validate()` can construct one; direct construction raises TypeError.
    """

    __slots__ = ("_schema_name", "_data")

    def __init__(self, schema_name: str, data: Mapping[str, Any], _token: object = None):
        if _token is not _GATE_TOKEN:
            raise TypeError("ValidatedInput can only be produced by strata.validation.validate()")
        object.__setattr__(self, "_schema_name", schema_name)
        object.__setattr__(self, "_data", MappingProxyType(copy.deepcopy(dict(data))))

    def __setattr__(self, name: str, value: Any) -> None:
        raise AttributeError("ValidatedInput is immutable")

    @property
    def schema_name(self) -> str:
        return self._schema_name

    def __getitem__(self, key: str) -> Any:
        return self._data[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._data)

    def __len__(self) -> int:
        return len(self._data)

    def as_dict(self) -> Dict[str, Any]:
        """Return a mutable deep copy of the validated data."""
        return copy.deepcopy(dict(self._data))

    def __repr__(self) -> str:
        return f"ValidatedInput({self._schema_name!r}, {dict(self._data)!r})"


def validate(schema: Schema, raw: Any) -> ValidatedInput:
    """
    Check `raw` against `schema`.

    Returns:
        ValidatedInput whose values equal the input's values for every declared
        field present (plus declared defaults for absent optional fields).

    Raises:
        ValidationError: details maps every violated field to its reason(s).
    """
    if not isinstance(raw, Mapping):
        raise ValidationError(
            details={BODY_KEY: f"expected an object, got {_type_name(raw)}"},
            context={"schema": schema.name},
        )

    details: Dict[str, str] = {}

    provided = [name for name in schema.fields if name in raw]
    if len(provided) < schema.min_fields:
        details[BODY_KEY] = (
            f"at least {schema.min_fields} of {', '.join(schema.fields)} must be provided"
        )

    instance = None
    try:
        instance = schema._model.model_validate(dict(raw))
    except PydanticValidationError as exc:
        for error in exc.errors():
            _add_detail(details, _error_key(error["loc"]), _describe(error))

    if details or instance is None:
        raise ValidationError(details=details, context={"schema": schema.name})

    data = instance.model_dump(by_alias=True, exclude_unset=True)
    for field_name, spec in schema.fields.items():
        if field_name not in data and spec.has_default:
            data[field_name] = copy.deepcopy(spec.default)

    return ValidatedInput(schema.name, data, _GATE_TOKEN)


def _error_key(loc: tuple) -> str:
    if not loc:
        return BODY_KEY
    return ".".join(str(part) for part in loc)


def _describe(error: Dict[str, Any]) -> str:
    # AfterValidator failures arrive as "Value error, <message>"
    if error.get("type") == "value_error" and "error" in error.get("ctx", {}):
        return str(error["ctx"]["error"])
    return error.get("msg", "invalid value")


def _add_detail(details: Dict[str, str], key: str, reason: str) -> None:
    if key in details:
        details[key] = f"{details[key]}; {reason}"
    else:
        details[key] = reason


def _type_name(value: Any) -> str:
    if value is None:
        return "nothing"
    for name, python_type in _PYTHON_TYPES.items():
        if type(value) is python_type:
            return name
    return type(value).__name__
