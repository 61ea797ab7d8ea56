from __future__ import annotations

import copy

import pytest

from dix import (
    DixConfigurationError,
    DixCyclicDependencyError,
    DixError,
    DixInjectionError,
    DixInvocationError,
    DixNotFoundError,
    DixProviderError,
    DixValidationError,
    ErrorType,
    get_error_details,
    is_error_type,
)


class Service:
    pass


class Repository:
    pass


@pytest.mark.parametrize(
    ("error_class", "error_type"),
    [
        (DixValidationError, ErrorType.VALIDATION),
        (DixProviderError, ErrorType.PROVIDER),
        (DixInjectionError, ErrorType.INJECTION),
        (DixNotFoundError, ErrorType.NOT_FOUND),
        (DixInvocationError, ErrorType.INVOCATION),
        (DixConfigurationError, ErrorType.CONFIGURATION),
    ],
)
def test_each_error_class_carries_its_error_type(
    error_class: type[DixError],
    error_type: ErrorType,
) -> None:
    error = error_class("failed")

    assert isinstance(error, DixError)
    assert error.error_type is error_type
    assert is_error_type(error, error_type)
    assert str(error) == f"[{error_type.value}] failed"


def test_str_renders_details_and_cause() -> None:
    cause = ValueError("boom")
    try:
        raise DixInvocationError("provider failed", provider="build", location="mod.py:3") from cause
    except DixInvocationError as error:
        rendered = str(error)
        assert error.cause is cause

    assert rendered == (
        "[INVOCATION] provider failed; details: provider=build, location=mod.py:3; cause: boom"
    )


def test_with_detail_stores_text_and_chains() -> None:
    error = DixValidationError("bad target")

    returned = error.with_detail("position", 1).with_detail("name", "target")

    assert returned is error
    assert error.details == {"position": "1", "name": "target"}


def test_cycle_error_renders_closed_path() -> None:
    error = DixCyclicDependencyError([Service, Repository])

    assert error.error_type is ErrorType.CYCLIC_DEPENDENCY
    assert error.cycle == (Service, Repository)
    assert error.details["cycle_path"] == "Service -> Repository -> Service"
    assert str(error).startswith("[CYCLIC_DEPENDENCY] circular dependency detected")


def test_not_found_for_type_names_type_and_kind() -> None:
    error = DixNotFoundError.for_type(list[Service], resolve_type="list")

    assert error.details == {
        "type": "list[Service]",
        "kind": "sequence",
        "resolve_type": "list",
    }


def test_helpers_ignore_foreign_exceptions() -> None:
    error = RuntimeError("boom")

    assert not is_error_type(error, ErrorType.INJECTION)
    assert get_error_details(error) is None
    assert get_error_details(DixProviderError("x", provider="p")) == {"provider": "p"}


def test_copy_keeps_cause_and_separates_details() -> None:
    cause = RuntimeError("boom")
    try:
        raise DixInvocationError("provider failed", provider="build") from cause
    except DixInvocationError as error:
        original = error

    replica = copy.copy(original).with_detail("target", "handler")

    assert type(replica) is DixInvocationError
    assert replica.message == original.message
    assert replica.cause is cause
    assert replica.details == {"provider": "build", "target": "handler"}
    assert original.details == {"provider": "build"}


def test_copy_of_cycle_error_keeps_cycle() -> None:
    error = DixCyclicDependencyError([Service, Repository])

    replica = copy.copy(error)

    assert replica.cycle == (Service, Repository)
    assert replica.details == error.details
    assert str(replica) == str(error)
