from __future__ import annotations

import inspect
from typing import Any

import pytest

import dix
import dix.exceptions

EXPECTED_EXPORTS = {
    "Container",
    "DEFAULT_GROUP",
    "DixConfigurationError",
    "DixCyclicDependencyError",
    "DixError",
    "DixInjectionError",
    "DixInvocationError",
    "DixNotFoundError",
    "DixProviderError",
    "DixValidationError",
    "ErrorType",
    "Graph",
    "Group",
    "INJECT_METHOD_PREFIX",
    "Options",
    "get_error_details",
    "is_error_type",
}


def _public_methods(cls: type[Any]) -> list[str]:
    names: list[str] = []
    for name, member in vars(cls).items():
        if name.startswith("_"):
            continue
        if isinstance(member, (staticmethod, classmethod)):
            member = member.__func__
        if inspect.isfunction(member):
            names.append(name)
    return sorted(names)


def test_all_lists_the_public_surface() -> None:
    assert set(dix.__all__) == EXPECTED_EXPORTS
    for name in dix.__all__:
        assert hasattr(dix, name)


def test_exceptions_module_exports_every_error_class() -> None:
    error_classes = {
        name
        for name, value in vars(dix.exceptions).items()
        if inspect.isclass(value) and issubclass(value, dix.DixError)
    }

    assert error_classes <= set(dix.exceptions.__all__)
    assert error_classes <= set(dix.__all__)


@pytest.mark.parametrize(
    "name",
    sorted(name for name in dix.__all__ if callable(getattr(dix, name))),
)
def test_exported_objects_and_their_methods_have_docstrings(name: str) -> None:
    exported = getattr(dix, name)

    assert inspect.getdoc(exported)
    if inspect.isclass(exported):
        undocumented = [
            method
            for method in _public_methods(exported)
            if not inspect.getdoc(getattr(exported, method))
        ]
        assert undocumented == []


def test_container_public_signatures() -> None:
    parameters = inspect.signature(dix.Container).parameters

    assert {name: parameter.default for name, parameter in parameters.items()} == {
        "allow_values_null": False,
        "inject_method_prefix": dix.INJECT_METHOD_PREFIX,
    }
    assert all(parameter.kind is inspect.Parameter.KEYWORD_ONLY for parameter in parameters.values())
    assert list(inspect.signature(dix.Container.inject).parameters) == [
        "self",
        "target",
        "allow_values_null",
    ]
    assert list(inspect.signature(dix.Container.set_value).parameters) == [
        "self",
        "value",
        "types",
        "group",
    ]
