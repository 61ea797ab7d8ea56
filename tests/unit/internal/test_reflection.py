from __future__ import annotations

import abc
import functools
from collections.abc import Callable, Mapping, MutableSequence, Sequence
from dataclasses import dataclass, field
from enum import Enum
from typing import Annotated, Any, ClassVar, NamedTuple, Protocol, TypeVar, runtime_checkable

import pytest

from dix import Group
from dix._internal.reflection import (
    TypeKind,
    callable_location,
    callable_name,
    classify,
    is_assignable,
    is_callable_target,
    is_compatible,
    mapping_types,
    object_fields,
    record_fields,
    sequence_element,
    split_annotated,
    type_name,
)

T = TypeVar("T")


class Service:
    pass


class AbstractService(abc.ABC):
    @abc.abstractmethod
    def run(self) -> None: ...


class Greeter(Protocol):
    def greet(self) -> str: ...


@runtime_checkable
class Closer(Protocol):
    def close(self) -> None: ...


@dataclass
class Settings:
    url: str


@dataclass(frozen=True)
class FrozenSettings:
    url: str


class Color(Enum):
    RED = "red"


class Pair(NamedTuple):
    service: Service
    label: str = "pair"


class Target:
    service: Service
    services: list[Service]
    limit: ClassVar[int] = 3
    retries: int = 2
    _hidden: Service

    @property
    def computed(self) -> Service:
        return Service()


def module_function(service: Service) -> None:
    return None


class Worker:
    def run(self, service: Service) -> None:
        return None


@pytest.mark.parametrize(
    ("annotation", "expected"),
    [
        (Service, TypeKind.INSTANCE),
        (AbstractService, TypeKind.INSTANCE),
        (Greeter, TypeKind.INSTANCE),
        (Settings, TypeKind.INSTANCE),
        (Callable[[], Service], TypeKind.CALLABLE),
        (Callable, TypeKind.CALLABLE),
        (list[Service], TypeKind.SEQUENCE),
        (Sequence[Service], TypeKind.SEQUENCE),
        (MutableSequence[Service], TypeKind.SEQUENCE),
        (dict[str, Service], TypeKind.MAPPING),
        (Mapping[str, list[Service]], TypeKind.MAPPING),
        (Pair, TypeKind.RECORD),
        (Annotated[Service, Group("x")], TypeKind.INSTANCE),
        (int, TypeKind.UNSUPPORTED),
        (bool, TypeKind.UNSUPPORTED),
        (str, TypeKind.UNSUPPORTED),
        (bytes, TypeKind.UNSUPPORTED),
        (Color, TypeKind.UNSUPPORTED),
        (list, TypeKind.UNSUPPORTED),
        (dict, TypeKind.UNSUPPORTED),
        (tuple[Service, ...], TypeKind.UNSUPPORTED),
        (object, TypeKind.UNSUPPORTED),
        (Any, TypeKind.UNSUPPORTED),
        (Service | None, TypeKind.UNSUPPORTED),
        (T, TypeKind.UNSUPPORTED),
        (None, TypeKind.UNSUPPORTED),
        (type[Service], TypeKind.UNSUPPORTED),
    ],
)
def test_classify(annotation: Any, expected: TypeKind) -> None:
    assert classify(annotation) is expected


def test_split_annotated_returns_bare_type_and_group() -> None:
    assert split_annotated(Annotated[Service, Group(" admin ")]) == (Service, "admin")
    assert split_annotated(Annotated[Service, "other metadata"]) == (Service, None)
    assert split_annotated(Service) == (Service, None)


def test_sequence_and_mapping_element_types() -> None:
    assert sequence_element(list[Service]) is Service
    assert sequence_element(Annotated[Sequence[Service], Group("x")]) is Service
    assert mapping_types(dict[str, Service]) == (str, Service)
    assert mapping_types(dict[str, list[Service]]) == (str, list[Service])


def test_record_fields_keep_declaration_order_and_defaults() -> None:
    fields = record_fields(Pair)

    assert [(item.name, item.annotation, item.has_default) for item in fields] == [
        ("service", Service, False),
        ("label", str, True),
    ]


def test_object_fields_skip_class_variables() -> None:
    fields = {item.name: item for item in object_fields(Target())}

    assert list(fields) == ["service", "services", "retries", "_hidden"]
    assert fields["service"].has_default is False
    assert fields["retries"].has_default is True


def test_object_fields_see_instance_values() -> None:
    @dataclass
    class Holder:
        services: list[Service] = field(default_factory=list)

    assert object_fields(Holder())[0].has_default is True


def test_is_assignable() -> None:
    target = Target()

    assert is_assignable(target, "service")
    assert not is_assignable(target, "_hidden")
    assert not is_assignable(target, "computed")
    assert is_assignable(Settings(url="x"), "url")
    assert not is_assignable(FrozenSettings(url="x"), "url")


def test_is_callable_target() -> None:
    assert is_callable_target(module_function)
    assert is_callable_target(Worker().run)
    assert is_callable_target(functools.partial(module_function))
    assert not is_callable_target(Service)
    assert not is_callable_target(Service())


def test_is_compatible() -> None:
    class Resource:
        def close(self) -> None:
            return None

    assert is_compatible(Service(), Service)
    assert not is_compatible(Settings(url="x"), Service)
    assert is_compatible(Resource(), Closer)
    assert not is_compatible(Service(), Closer)
    assert is_compatible(Service(), Greeter)
    assert is_compatible(module_function, Callable[[Service], None])
    assert not is_compatible(Service(), Callable[[], None])


@pytest.mark.parametrize(
    ("annotation", "expected"),
    [
        (Service, "Service"),
        (Annotated[Service, Group("x")], "Service"),
        (list[Service], "list[Service]"),
        (dict[str, list[Service]], "dict[str, list[Service]]"),
        (Callable[[Service], None], "Callable[[Service], None]"),
        (Any, "Any"),
    ],
)
def test_type_name(annotation: Any, expected: str) -> None:
    assert type_name(annotation) == expected


def test_callable_name_and_location() -> None:
    assert callable_name(module_function) == "module_function"
    assert callable_name(functools.partial(module_function)) == "partial(module_function)"
    location = callable_location(module_function)
    assert location.startswith(f"{__name__}.module_function (")
    assert location.endswith(f"{module_function.__code__.co_firstlineno})")
