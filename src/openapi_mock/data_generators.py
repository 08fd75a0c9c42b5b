"""
Data generators for mock responses.

Generates realistic fake data that satisfies JSON Schema / OpenAPI schema
objects: types, formats, enums, string and numeric bounds, array and object
constraints and composition keywords. Field names steer generation toward
realistic values (``email`` gets an email) whenever the result still fits
the schema.

Supports deterministic mode (seeded) for reproducible test data. Faker
draws from the same ``random.Random`` as the generator, so one seed fixes
the whole output.
"""

from __future__ import annotations

import copy
import json
import math
import random
import re
import string
from fractions import Fraction
from typing import Any

from faker import Faker

from openapi_mock.field_mapping import (
    TYPE_FORMAT_MAPPING,
    find_field_producer,
)
from openapi_mock.patterns import generate_matching

DEFAULT_MIN_ITEMS = 1
DEFAULT_MAX_ITEMS = 3
DEFAULT_MAX_DEPTH = 5
MAX_UNIQUE_ATTEMPTS = 50

_INT_RANGE = (1, 1000)
_NUMBER_RANGE = (0, 1000)
_ALNUM = string.ascii_letters + string.digits

_OBJECT_KEYWORDS = ("properties", "additionalProperties", "required", "minProperties", "maxProperties")
_ARRAY_KEYWORDS = ("items", "prefixItems", "minItems", "maxItems", "uniqueItems")
_NUMBER_KEYWORDS = ("minimum", "maximum", "exclusiveMinimum", "exclusiveMaximum", "multipleOf")
_STRING_KEYWORDS = ("minLength", "maxLength", "pattern", "format")
_TYPED_KEYWORDS = _OBJECT_KEYWORDS + _ARRAY_KEYWORDS + _NUMBER_KEYWORDS + _STRING_KEYWORDS


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


class DataGenerator:
    """Generate fake data from OpenAPI schema objects.

    Args:
        seed: Optional seed for deterministic output. When set, identical
              calls produce identical data across runs.
        rng: Existing random source to draw from instead of a new one.
        max_depth: Nesting depth after which optional parts of recursive
              schemas are no longer generated.
    """

    def __init__(
        self,
        seed: int | None = None,
        *,
        rng: random.Random | None = None,
        max_depth: int = DEFAULT_MAX_DEPTH,
    ) -> None:
        self._rng = rng if rng is not None else random.Random(seed)
        self.faker = Faker()
        self.faker.random = self._rng
        self.max_depth = max_depth

    @property
    def rng(self) -> random.Random:
        return self._rng

    # =========================================================================
    # Entry points
    # =========================================================================

    def generate(self, schema: Any, field_name: str | None = None) -> Any:
        """Generate a value satisfying ``schema``.

        Args:
            schema: A dereferenced schema object (or boolean schema).
            field_name: Property name the value is for, if any.
        """
        return self._generate(schema, field_name, 0)

    def generate_from_field_name(self, field_name: str) -> Any:
        """Generate a value from the field name alone.

        Returns:
            A realistic value, or None when the name is not recognized.
        """
        producer = find_field_producer(field_name)
        return producer(self) if producer is not None else None

    def generate_id(self, schema: Any) -> Any:
        """Generate a fresh identifier for an ID field."""
        if isinstance(schema, dict) and self._schema_type(schema) in ("integer", "number"):
            return self._generate_number(schema, integer=True)
        if isinstance(schema, dict) and (schema.get("format") or schema.get("pattern")):
            return self._generate(schema, None, 0)
        return self.faker.uuid4()

    # =========================================================================
    # Dispatch
    # =========================================================================

    def _generate(self, schema: Any, field_name: str | None, depth: int) -> Any:
        if schema is False:
            return None
        if schema is True or schema is None:
            schema = {}
        if not isinstance(schema, dict) or depth > self.max_depth * 2:
            # Past twice the soft limit only a required cycle can still be recursing
            return None

        if "allOf" in schema:
            return self._generate(merge_all_of(schema), field_name, depth)

        for keyword in ("oneOf", "anyOf"):
            alternatives = [a for a in schema.get(keyword) or [] if a is not False]
            if alternatives:
                return self._generate(self._pick_alternative(schema, alternatives), field_name, depth)

        heuristic = self._from_field_name(schema, field_name)
        if heuristic is not _NO_VALUE:
            return heuristic

        if "const" in schema:
            return copy.deepcopy(schema["const"])
        enum = schema.get("enum")
        if isinstance(enum, list) and enum:
            return copy.deepcopy(self._rng.choice(enum))

        schema_type = self._schema_type(schema)
        if schema_type == "object":
            return self._generate_object(schema, depth)
        if schema_type == "array":
            return self._generate_array(schema, field_name, depth)
        if schema_type == "integer":
            return self._generate_number(schema, integer=True)
        if schema_type == "number":
            return self._generate_number(schema, integer=False)
        if schema_type == "boolean":
            return self._rng.random() < 0.5
        if schema_type == "null":
            return None
        return self._generate_string(schema)

    def _pick_alternative(self, schema: dict[str, Any], alternatives: list[Any]) -> Any:
        chosen = self._rng.choice(alternatives)
        base = {k: v for k, v in schema.items() if k not in ("oneOf", "anyOf")}
        if not base or not isinstance(chosen, dict):
            return chosen
        return merge_all_of({"allOf": [base, chosen]})

    def _schema_type(self, schema: dict[str, Any]) -> str:
        declared = schema.get("type")
        if isinstance(declared, list):
            # OAS 3.1 nullable: ["string", "null"] generates the non-null type
            concrete = [t for t in declared if t != "null"]
            if not concrete:
                return "null"
            return concrete[0] if len(concrete) == 1 else self._rng.choice(concrete)
        if isinstance(declared, str):
            return declared
        return infer_type(schema)

    # =========================================================================
    # Field-name heuristics
    # =========================================================================

    def _from_field_name(self, schema: dict[str, Any], field_name: str | None) -> Any:
        if not field_name or "format" in schema:
            return _NO_VALUE
        declared = schema.get("type")
        if isinstance(declared, list):
            types = declared
        elif declared:
            types = [declared]
        elif any(k in schema for k in _TYPED_KEYWORDS):
            types = [infer_type(schema)]
        else:
            types = []
        if "object" in types or "array" in types:
            return _NO_VALUE

        producer = find_field_producer(field_name)
        if producer is None:
            return _NO_VALUE
        value = producer(self)
        return value if fits_schema(value, schema, types) else _NO_VALUE

    # =========================================================================
    # Strings
    # =========================================================================

    def _generate_string(self, schema: dict[str, Any]) -> str:
        min_length = int(schema.get("minLength", 0) or 0)
        max_length = schema.get("maxLength")
        max_length = int(max_length) if _is_number(max_length) else None

        producer = TYPE_FORMAT_MAPPING.get(schema.get("format", ""))
        if producer is not None:
            return self._clamp_length(str(producer(self)), min_length, max_length)

        pattern = schema.get("pattern")
        if isinstance(pattern, str):
            value = generate_matching(pattern, self._rng, min_length=min_length, max_length=max_length)
            if value is not None:
                return value

        return self._random_text(min_length, max_length)

    def _clamp_length(self, value: str, min_length: int, max_length: int | None) -> str:
        if max_length is not None and len(value) > max_length:
            value = value[:max_length]
        if len(value) < min_length:
            value += "".join(self._rng.choice(_ALNUM) for _ in range(min_length - len(value)))
        return value

    def _random_text(self, min_length: int, max_length: int | None) -> str:
        if max_length is None:
            low = max(min_length, 5)
            target = self._rng.randint(low, low + 20)
        else:
            target = self._rng.randint(min_length, max(min_length, max_length))
        if target == 0:
            return ""

        text = ""
        while len(text) < target:
            text = f"{text} {self.faker.word()}" if text else self.faker.word()
        text = text[:target]
        if text.endswith(" "):
            text = text[:-1] + self._rng.choice(string.ascii_lowercase)
        return text

    # =========================================================================
    # Numbers
    # =========================================================================

    def _generate_number(self, schema: dict[str, Any], integer: bool) -> int | float:
        low, high = numeric_bounds(schema, integer)

        multiple = schema.get("multipleOf")
        if _is_number(multiple) and multiple > 0:
            value = self._draw_multiple(low, high, multiple, integer)
            if value is not None:
                return value

        if integer:
            return self._rng.randint(int(low), int(high)) if low <= high else int(low)
        if low > high:
            return float(low)
        value = self._rng.uniform(low, high)
        rounded = round(value, 2)
        return rounded if low <= rounded <= high else value

    def _draw_multiple(
        self, low: float, high: float, multiple: int | float, integer: bool
    ) -> int | float | None:
        step = Fraction(str(multiple))
        if integer:
            # Integer multiples of p/q (reduced) are exactly the multiples of p
            step = Fraction(step.numerator)
        k_low = math.ceil(Fraction(low) / step)
        k_high = math.floor(Fraction(high) / step)
        if k_low > k_high:
            return None
        value = self._rng.randint(k_low, k_high) * step
        if integer or value.denominator == 1 and isinstance(multiple, int):
            return int(value)
        return float(value)

    # =========================================================================
    # Arrays
    # =========================================================================

    def _generate_array(self, schema: dict[str, Any], field_name: str | None, depth: int) -> list[Any]:
        min_items = int(schema.get("minItems", 0) or 0)
        max_items = schema.get("maxItems")
        max_items = int(max_items) if _is_number(max_items) else None

        low = min_items if "minItems" in schema else DEFAULT_MIN_ITEMS
        high = max_items if max_items is not None else DEFAULT_MAX_ITEMS
        if max_items is not None and low > max_items:
            low = max_items
        high = max(high, low, min_items)
        low = max(low, min_items)
        if depth >= self.max_depth:
            high = low

        length = self._rng.randint(low, high)
        prefix = schema.get("prefixItems") or []
        items_schema = schema.get("items", {})
        item_name = singular(field_name)

        unique = bool(schema.get("uniqueItems"))
        domain = domain_size(items_schema) if unique else None
        seen: set[str] = set()
        result: list[Any] = []

        for index in range(length):
            item_schema = prefix[index] if index < len(prefix) else items_schema
            value = self._generate(item_schema, item_name, depth + 1)
            if unique:
                fingerprint = _fingerprint(value)
                attempts = 1
                while fingerprint in seen and attempts < MAX_UNIQUE_ATTEMPTS:
                    if domain is not None and len(seen) >= domain:
                        # Every possible value is already used; a repeat is unavoidable
                        break
                    value = self._generate(item_schema, item_name, depth + 1)
                    fingerprint = _fingerprint(value)
                    attempts += 1
                seen.add(fingerprint)
            result.append(value)
        return result

    # =========================================================================
    # Objects
    # =========================================================================

    def _generate_object(self, schema: dict[str, Any], depth: int) -> dict[str, Any]:
        properties = schema.get("properties") or {}
        required = [name for name in schema.get("required") or [] if isinstance(name, str)]
        additional = schema.get("additionalProperties", True)

        result: dict[str, Any] = {}
        nested_too_deep = depth >= self.max_depth
        for name, prop_schema in properties.items():
            if nested_too_deep and name not in required:
                continue
            result[name] = self._generate(prop_schema, name, depth + 1)

        for name in required:
            if name not in result:
                extra = additional if isinstance(additional, dict) else {}
                result[name] = self._generate(extra, name, depth + 1)

        min_properties = int(schema.get("minProperties", 0) or 0)
        if additional is not False:
            counter = 1
            while len(result) < min_properties:
                key = self.faker.word()
                if key in result:
                    key = f"{key}_{counter}"
                counter += 1
                if key in result:
                    continue
                extra = additional if isinstance(additional, dict) else {"type": "string"}
                result[key] = self._generate(extra, key, depth + 1)
        return result


class _NoValue:
    pass


_NO_VALUE = _NoValue()


def generate_from_schema(
    schema: Any,
    rng: random.Random | None = None,
    field_name: str | None = None,
) -> Any:
    """Generate one value for ``schema``.

    Example:
        >>> generate_from_schema({"type": "integer", "minimum": 5, "maximum": 5})
        5
    """
    return DataGenerator(rng=rng).generate(schema, field_name)


# =============================================================================
# Schema helpers
# =============================================================================


def infer_type(schema: dict[str, Any]) -> str:
    """Infer a type for a schema without a ``type`` keyword."""
    if any(k in schema for k in _OBJECT_KEYWORDS):
        return "object"
    if any(k in schema for k in _ARRAY_KEYWORDS):
        return "array"
    if any(k in schema for k in _NUMBER_KEYWORDS):
        return "number"
    if any(k in schema for k in _STRING_KEYWORDS):
        return "string"
    return "string"


def merge_all_of(schema: dict[str, Any]) -> dict[str, Any]:
    """Flatten ``allOf`` into one schema.

    Properties are merged (later alternatives win on name clashes), required
    lists are unioned, and other keywords keep their first occurrence.
    """
    merged = {k: v for k, v in schema.items() if k != "allOf"}
    properties: dict[str, Any] = dict(merged.get("properties") or {})
    required: list[str] = list(merged.get("required") or [])

    for sub in schema.get("allOf") or []:
        if not isinstance(sub, dict):
            continue
        if "allOf" in sub:
            sub = merge_all_of(sub)
        for key, value in sub.items():
            if key == "properties" and isinstance(value, dict):
                properties.update(value)
            elif key == "required" and isinstance(value, list):
                required.extend(name for name in value if name not in required)
            elif key not in merged:
                merged[key] = value

    if properties:
        merged["properties"] = properties
        merged.setdefault("type", "object")
    if required:
        merged["required"] = required
    return merged


def numeric_bounds(schema: dict[str, Any], integer: bool) -> tuple[float, float]:
    """Effective inclusive [low, high] range for a numeric schema.

    Understands both OAS 3.0 boolean ``exclusiveMinimum``/``exclusiveMaximum``
    and the OAS 3.1 numeric form.
    """
    low = _lower_bound(schema.get("minimum"), schema.get("exclusiveMinimum"), integer)
    high = _upper_bound(schema.get("maximum"), schema.get("exclusiveMaximum"), integer)

    default_low, default_high = _INT_RANGE if integer else _NUMBER_RANGE
    span = default_high - default_low
    if low is None and high is None:
        return default_low, default_high
    if low is None:
        low = default_low if default_low <= high else high - span
    if high is None:
        high = default_high if default_high >= low else low + span
    return low, high


def _nudge(bound: float) -> float:
    return max(abs(bound), 1.0) * 1e-9


def _lower_bound(minimum: Any, exclusive: Any, integer: bool) -> float | None:
    candidates: list[float] = []
    if _is_number(minimum):
        if exclusive is True:
            candidates.append(math.floor(minimum) + 1 if integer else minimum + _nudge(minimum))
        else:
            candidates.append(math.ceil(minimum) if integer else minimum)
    if _is_number(exclusive):
        candidates.append(math.floor(exclusive) + 1 if integer else exclusive + _nudge(exclusive))
    return max(candidates) if candidates else None


def _upper_bound(maximum: Any, exclusive: Any, integer: bool) -> float | None:
    candidates: list[float] = []
    if _is_number(maximum):
        if exclusive is True:
            candidates.append(math.ceil(maximum) - 1 if integer else maximum - _nudge(maximum))
        else:
            candidates.append(math.floor(maximum) if integer else maximum)
    if _is_number(exclusive):
        candidates.append(math.ceil(exclusive) - 1 if integer else exclusive - _nudge(exclusive))
    return min(candidates) if candidates else None


def domain_size(schema: Any) -> int | None:
    """Number of distinct values a schema admits, or None if unbounded."""
    if not isinstance(schema, dict):
        return None
    if "const" in schema:
        return 1
    if isinstance(schema.get("enum"), list):
        return len({_fingerprint(v) for v in schema["enum"]})
    schema_type = schema.get("type")
    if schema_type == "boolean":
        return 2
    if schema_type == "null":
        return 1
    if schema_type == "integer" and any(k in schema for k in _NUMBER_KEYWORDS):
        low, high = numeric_bounds(schema, integer=True)
        if high < low:
            return 0
        multiple = schema.get("multipleOf")
        if _is_number(multiple) and multiple > 0:
            step = Fraction(Fraction(str(multiple)).numerator)
            return max(0, math.floor(Fraction(high) / step) - math.ceil(Fraction(low) / step) + 1)
        return int(high - low) + 1
    return None


def fits_schema(value: Any, schema: dict[str, Any], types: list[str] | None = None) -> bool:
    """Whether a heuristic value satisfies a scalar schema's constraints.

    ``types`` overrides the schema's declared ``type``, so callers can pass
    the type inferred from keywords for schemas that declare none.
    """
    if types is None:
        declared = schema.get("type")
        types = declared if isinstance(declared, list) else [declared] if declared else []
    if types and not any(_matches_type(value, t) for t in types):
        return False
    if "const" in schema and value != schema["const"]:
        return False
    enum = schema.get("enum")
    if isinstance(enum, list) and value not in enum:
        return False

    if isinstance(value, str):
        if len(value) < schema.get("minLength", 0):
            return False
        if _is_number(schema.get("maxLength")) and len(value) > schema["maxLength"]:
            return False
        pattern = schema.get("pattern")
        if isinstance(pattern, str):
            try:
                if not re.search(pattern, value):
                    return False
            except re.error:
                return False
    elif _is_number(value):
        low, high = numeric_bounds(schema, integer=isinstance(value, int))
        if any(k in schema for k in ("minimum", "exclusiveMinimum")) and value < low:
            return False
        if any(k in schema for k in ("maximum", "exclusiveMaximum")) and value > high:
            return False
        multiple = schema.get("multipleOf")
        if _is_number(multiple) and multiple > 0:
            if (Fraction(str(value)) / Fraction(str(multiple))).denominator != 1:
                return False
    return True


def _matches_type(value: Any, schema_type: str) -> bool:
    if schema_type == "string":
        return isinstance(value, str)
    if schema_type == "integer":
        return isinstance(value, int) and not isinstance(value, bool)
    if schema_type == "number":
        return _is_number(value)
    if schema_type == "boolean":
        return isinstance(value, bool)
    if schema_type == "null":
        return value is None
    return False


def singular(name: str | None) -> str | None:
    if not name:
        return name
    if name.endswith("ies") and len(name) > 3:
        return name[:-3] + "y"
    if name.endswith("s") and not name.endswith("ss") and len(name) > 1:
        return name[:-1]
    return name


def _fingerprint(value: Any) -> str:
    return json.dumps(value, sort_keys=True, default=str)
