"""
Property-based tests for the data generator using Hypothesis.

Schemas are generated, not hand-picked: every numeric, array and object
schema Hypothesis draws must produce a value that satisfies it.
"""

from __future__ import annotations

import math
import string
from fractions import Fraction
from typing import Any

from hypothesis import assume, given, settings
from hypothesis import strategies as st

from openapi_mock.data_generators import DataGenerator, numeric_bounds

SEEDS = st.integers(min_value=0, max_value=2**16)

# Faker setup dominates a single example, so examples are not timed
PROPERTY_SETTINGS = settings(max_examples=100, deadline=None)


# =============================================================================
# Strategies
# =============================================================================


@st.composite
def integer_schemas(
    draw: st.DrawFn, two_sided: bool = False, with_multiple: bool = False
) -> tuple[dict[str, Any], int | None, int | None]:
    """An integer schema plus the inclusive bounds its values must respect."""
    low = draw(st.integers(min_value=-10_000, max_value=10_000))
    high = low + draw(st.integers(min_value=0, max_value=2_000))
    sides = "both" if two_sided else draw(st.sampled_from(["both", "min", "max"]))
    style = draw(st.sampled_from(["inclusive", "boolean", "numeric"]))

    schema: dict[str, Any] = {"type": "integer"}
    lo: int | None = None
    hi: int | None = None
    if sides in ("both", "min"):
        if style == "numeric":
            schema["exclusiveMinimum"] = low
        else:
            schema["minimum"] = low
            if style == "boolean":
                schema["exclusiveMinimum"] = True
        lo = low if style == "inclusive" else low + 1
    if sides in ("both", "max"):
        if style == "numeric":
            schema["exclusiveMaximum"] = high
        else:
            schema["maximum"] = high
            if style == "boolean":
                schema["exclusiveMaximum"] = True
        hi = high if style == "inclusive" else high - 1

    multiples = st.integers(min_value=1, max_value=50)
    multiple = draw(multiples if with_multiple else st.none() | multiples)
    if multiple is not None:
        schema["multipleOf"] = multiple
    return schema, lo, hi


@st.composite
def number_schemas(
    draw: st.DrawFn, with_multiple: bool = False
) -> tuple[dict[str, Any], float, float, bool]:
    """A bounded number schema plus its raw bounds and whether they are exclusive."""
    low = draw(st.floats(min_value=-1e6, max_value=1e6, allow_nan=False, allow_infinity=False))
    high = low + draw(st.floats(min_value=0.5, max_value=1e4))
    style = draw(st.sampled_from(["inclusive", "boolean", "numeric"]))

    schema: dict[str, Any] = {"type": "number"}
    if style == "numeric":
        schema.update(exclusiveMinimum=low, exclusiveMaximum=high)
    else:
        schema.update(minimum=low, maximum=high)
        if style == "boolean":
            schema.update(exclusiveMinimum=True, exclusiveMaximum=True)

    choices = [0.1, 0.25, 0.5, 2, 5] if with_multiple else [None, 0.1, 0.25, 0.5, 2, 5]
    multiple = draw(st.sampled_from(choices))
    if multiple is not None:
        schema["multipleOf"] = multiple
    return schema, low, high, style != "inclusive"


@st.composite
def array_schemas(draw: st.DrawFn) -> dict[str, Any]:
    schema: dict[str, Any] = {"type": "array", "items": {"type": "integer"}}
    min_items = draw(st.none() | st.integers(min_value=0, max_value=20))
    max_items = draw(st.none() | st.integers(min_value=0, max_value=20))
    if min_items is not None:
        schema["minItems"] = min_items
    if max_items is not None:
        schema["maxItems"] = max_items
    if draw(st.booleans()):
        schema["uniqueItems"] = True
    return schema


@st.composite
def object_schemas(draw: st.DrawFn, closed: bool | None = None) -> dict[str, Any]:
    names = draw(
        st.lists(
            st.text(alphabet=string.ascii_lowercase, min_size=1, max_size=8),
            unique=True,
            max_size=6,
        )
    )
    if closed is None:
        closed = draw(st.booleans())
    required = draw(st.lists(st.sampled_from(names), unique=True)) if names else []
    if not closed:
        # Open objects may require names they never declare
        required += draw(
            st.lists(st.text(alphabet="XYZ", min_size=1, max_size=3), unique=True, max_size=2)
        )

    schema: dict[str, Any] = {
        "type": "object",
        "properties": {name: {"type": "string"} for name in names},
        "minProperties": draw(st.integers(min_value=0, max_value=8)),
    }
    if required:
        schema["required"] = required
    if closed:
        schema["additionalProperties"] = False
    return schema


def _is_multiple(value: int | float, multiple: int | float) -> bool:
    return (Fraction(str(value)) / Fraction(str(multiple))).denominator == 1


# =============================================================================
# Numbers
# =============================================================================


class TestNumericProperties:
    """Invariants for integer and number schemas."""

    @given(integer_schemas(), SEEDS)
    @PROPERTY_SETTINGS
    def test_integer_within_bounds(
        self, drawn: tuple[dict[str, Any], int | None, int | None], seed: int
    ) -> None:
        """Invariant: integers respect both bounds, exclusive or not."""
        schema, lo, hi = drawn
        assume(lo is None or hi is None or lo <= hi)

        value = DataGenerator(seed=seed).generate(schema)

        assert isinstance(value, int) and not isinstance(value, bool)
        if lo is not None:
            assert value >= lo
        if hi is not None:
            assert value <= hi

    @given(integer_schemas(two_sided=True, with_multiple=True), SEEDS)
    @PROPERTY_SETTINGS
    def test_integer_on_lattice_when_one_exists(
        self, drawn: tuple[dict[str, Any], int | None, int | None], seed: int
    ) -> None:
        """Invariant: with a non-empty multipleOf lattice the value is on it."""
        schema, lo, hi = drawn
        multiple = schema["multipleOf"]
        assert lo is not None and hi is not None
        assume(-(-lo // multiple) <= hi // multiple)

        value = DataGenerator(seed=seed).generate(schema)

        assert value % multiple == 0
        assert lo <= value <= hi

    @given(number_schemas(), SEEDS)
    @PROPERTY_SETTINGS
    def test_number_within_bounds(
        self, drawn: tuple[dict[str, Any], float, float, bool], seed: int
    ) -> None:
        """Invariant: numbers respect bounds, strictly when they are exclusive."""
        schema, low, high, exclusive = drawn

        value = DataGenerator(seed=seed).generate(schema)

        assert isinstance(value, (int, float)) and not isinstance(value, bool)
        if exclusive:
            assert low < value < high
        else:
            assert low <= value <= high

    @given(number_schemas(with_multiple=True), SEEDS)
    @PROPERTY_SETTINGS
    def test_number_on_lattice_when_one_exists(
        self, drawn: tuple[dict[str, Any], float, float, bool], seed: int
    ) -> None:
        """Invariant: a decimal multipleOf is honoured whenever a multiple fits."""
        schema, _, _, _ = drawn
        multiple = schema["multipleOf"]
        lo, hi = numeric_bounds(schema, integer=False)
        step = Fraction(str(multiple))
        assume(math.ceil(Fraction(lo) / step) <= math.floor(Fraction(hi) / step))

        value = DataGenerator(seed=seed).generate(schema)

        assert _is_multiple(value, multiple)


# =============================================================================
# Arrays & objects
# =============================================================================


class TestArrayProperties:
    @given(array_schemas(), SEEDS)
    @PROPERTY_SETTINGS
    def test_length_within_effective_bounds(self, schema: dict[str, Any], seed: int) -> None:
        """Invariant: minItems <= len <= max(maxItems, minItems)."""
        value = DataGenerator(seed=seed).generate(schema)

        min_items = schema.get("minItems", 0)
        assert len(value) >= min_items
        if "maxItems" in schema:
            assert len(value) <= max(schema["maxItems"], min_items)
        if schema.get("uniqueItems"):
            assert len(set(value)) == len(value)


class TestObjectProperties:
    @given(object_schemas(), SEEDS)
    @PROPERTY_SETTINGS
    def test_required_keys_present(self, schema: dict[str, Any], seed: int) -> None:
        """Invariant: every required name appears in the output."""
        value = DataGenerator(seed=seed).generate(schema)
        assert set(schema.get("required", [])) <= set(value)

    @given(object_schemas(closed=True), SEEDS)
    @PROPERTY_SETTINGS
    def test_closed_objects_never_gain_keys(self, schema: dict[str, Any], seed: int) -> None:
        """Invariant: additionalProperties false keeps keys within the declared ones."""
        value = DataGenerator(seed=seed).generate(schema)
        assert set(value) <= set(schema["properties"])

    @given(object_schemas(closed=False), SEEDS)
    @PROPERTY_SETTINGS
    def test_open_objects_meet_min_properties(self, schema: dict[str, Any], seed: int) -> None:
        """Invariant: open objects are padded up to minProperties."""
        value = DataGenerator(seed=seed).generate(schema)
        assert len(value) >= schema["minProperties"]
