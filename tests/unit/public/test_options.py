from __future__ import annotations

import dataclasses

import pytest

from dix import INJECT_METHOD_PREFIX, Container, DixConfigurationError, ErrorType, Options


def test_defaults() -> None:
    options = Options()

    assert options.allow_values_null is False
    assert options.inject_method_prefix == INJECT_METHOD_PREFIX == "DixInject"


def test_options_are_frozen() -> None:
    with pytest.raises(dataclasses.FrozenInstanceError):
        Options().allow_values_null = True  # type: ignore[misc]


@pytest.mark.parametrize(
    ("defaults", "per_call", "expected"),
    [
        (False, False, False),
        (False, True, True),
        (True, False, True),
        (True, True, True),
    ],
)
def test_merge_keeps_allow_values_null_sticky(
    defaults: bool,
    per_call: bool,
    expected: bool,
) -> None:
    merged = Options(allow_values_null=defaults).merge(Options(allow_values_null=per_call))

    assert merged.allow_values_null is expected


def test_merge_keeps_container_prefix() -> None:
    merged = Options(inject_method_prefix="Setup").merge(Options())

    assert merged.inject_method_prefix == "Setup"


@pytest.mark.parametrize(
    "options",
    [
        Options(inject_method_prefix=""),
        Options(inject_method_prefix="has space"),
        Options(allow_values_null="yes"),  # type: ignore[arg-type]
    ],
)
def test_validate_rejects_invalid_values(options: Options) -> None:
    with pytest.raises(DixConfigurationError) as excinfo:
        options.validate()

    assert excinfo.value.error_type is ErrorType.CONFIGURATION


def test_container_validates_options_at_construction() -> None:
    with pytest.raises(DixConfigurationError, match="inject_method_prefix"):
        Container(inject_method_prefix="")


def test_container_exposes_its_options() -> None:
    container = Container(allow_values_null=True, inject_method_prefix="Setup")

    assert container.options == Options(allow_values_null=True, inject_method_prefix="Setup")
