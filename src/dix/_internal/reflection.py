from __future__ import annotations

import collections.abc
import dataclasses
import functools
import inspect
import types
from dataclasses import dataclass
from enum import Enum
from typing import Annotated, Any, ClassVar, TypeGuard, get_args, get_origin, get_type_hints

from dix.markers import group_of


class TypeKind(str, Enum):
    """Classify annotations by how the container can inject them."""

    INSTANCE = "instance"
    """A runtime class: plain classes, dataclasses, ABCs and protocols."""

    CALLABLE = "callable"
    """A ``Callable[...]`` annotation."""

    SEQUENCE = "sequence"
    """An ordered sequence such as ``list[T]``."""

    MAPPING = "mapping"
    """A string-keyed mapping such as ``dict[str, T]``."""

    RECORD = "record"
    """A ``NamedTuple`` whose fields are resolved one by one."""

    UNSUPPORTED = "unsupported"
    """Scalars, bare containers, unions and other annotations the container rejects."""


SINGULAR_KINDS = frozenset({TypeKind.INSTANCE, TypeKind.CALLABLE})

_SEQUENCE_ORIGINS: tuple[Any, ...] = (
    list,
    collections.abc.Sequence,
    collections.abc.MutableSequence,
)
_MAPPING_ORIGINS: tuple[Any, ...] = (
    dict,
    collections.abc.Mapping,
    collections.abc.MutableMapping,
)
_SCALAR_BASES: tuple[type[Any], ...] = (
    int,
    float,
    complex,
    str,
    bytes,
    bytearray,
    Enum,
    list,
    dict,
    tuple,
    set,
    frozenset,
    type,
)
_OPAQUE_TYPES: tuple[Any, ...] = (object, Any, type(None), *_SEQUENCE_ORIGINS, *_MAPPING_ORIGINS)


@dataclass(frozen=True, slots=True)
class RecordField:
    """Describe one annotated field of a record or an injection target."""

    name: str
    annotation: Any
    has_default: bool


def is_runtime_class(candidate: object) -> TypeGuard[type[Any]]:
    """Return true when candidate is a runtime class safe for class-only operations.

    Args:
        candidate: Value being checked for eligibility or runtime type constraints.

    """
    return isinstance(candidate, type) and not isinstance(candidate, types.GenericAlias)


def is_record_type(candidate: object) -> bool:
    """Return whether candidate is a ``NamedTuple`` class.

    Args:
        candidate: Annotation or value to check.

    """
    return (
        is_runtime_class(candidate)
        and issubclass(candidate, tuple)
        and isinstance(getattr(candidate, "_fields", None), tuple)
    )


def strip_annotated(annotation: Any) -> Any:
    """Unwrap ``Annotated[T, ...]`` into ``T``, repeatedly for nested metadata.

    Args:
        annotation: Annotation value to unwrap.

    """
    while get_origin(annotation) is Annotated:
        annotation = get_args(annotation)[0]
    return annotation


def split_annotated(annotation: Any) -> tuple[Any, str | None]:
    """Return the bare annotation and the group its metadata binds, if any.

    Args:
        annotation: Annotation value to inspect or normalize.

    """
    return strip_annotated(annotation), group_of(annotation)


def classify(annotation: Any) -> TypeKind:
    """Return the injection kind of an annotation.

    Args:
        annotation: Annotation value to classify. ``Annotated`` metadata is ignored.

    """
    annotation = strip_annotated(annotation)
    origin = get_origin(annotation)
    if origin is collections.abc.Callable:
        return TypeKind.CALLABLE
    if origin in _SEQUENCE_ORIGINS:
        return TypeKind.SEQUENCE
    if origin in _MAPPING_ORIGINS:
        return TypeKind.MAPPING
    if origin is not None:
        return TypeKind.UNSUPPORTED
    if annotation is collections.abc.Callable:
        return TypeKind.CALLABLE
    if not is_runtime_class(annotation):
        return TypeKind.UNSUPPORTED
    if is_record_type(annotation):
        return TypeKind.RECORD
    if annotation in _OPAQUE_TYPES or issubclass(annotation, _SCALAR_BASES):
        return TypeKind.UNSUPPORTED
    return TypeKind.INSTANCE


def sequence_element(annotation: Any) -> Any:
    annotation_args = get_args(strip_annotated(annotation))
    return annotation_args[0] if annotation_args else Any


def mapping_types(annotation: Any) -> tuple[Any, Any]:
    annotation_args = get_args(strip_annotated(annotation))
    if len(annotation_args) != 2:  # noqa: PLR2004
        return Any, Any
    return annotation_args[0], annotation_args[1]


def record_fields(record_type: type[Any]) -> list[RecordField]:
    """Return the fields of a ``NamedTuple`` class in declaration order.

    Raises whatever ``typing.get_type_hints`` raises for unresolvable
    annotations; callers translate it into a dix error.

    Args:
        record_type: ``NamedTuple`` class to inspect.

    """
    hints = get_type_hints(record_type, include_extras=True)
    defaults = getattr(record_type, "_field_defaults", {})
    return [
        RecordField(name=name, annotation=hints.get(name, Any), has_default=name in defaults)
        for name in record_type._fields
    ]


def object_fields(instance: object) -> list[RecordField]:
    """Return the annotated attributes of an injection target.

    Class annotations are collected through the MRO. ``ClassVar`` and
    ``InitVar`` annotations are not attributes and are left out.
    ``has_default`` is true when the attribute already holds a value on the
    instance or the class.

    Args:
        instance: Object whose class annotations describe its attributes.

    """
    owner = type(instance)
    hints = get_type_hints(owner, include_extras=True)
    instance_dict = getattr(instance, "__dict__", {})
    fields: list[RecordField] = []
    for name, annotation in hints.items():
        bare = strip_annotated(annotation)
        if bare is ClassVar or get_origin(bare) is ClassVar:
            continue
        if isinstance(bare, dataclasses.InitVar):
            continue
        fields.append(
            RecordField(
                name=name,
                annotation=annotation,
                has_default=name in instance_dict or hasattr(owner, name),
            ),
        )
    return fields


def is_exported(name: str) -> bool:
    return not name.startswith("_")


def is_assignable(instance: object, name: str) -> bool:
    """Return whether the container may set attribute ``name`` on ``instance``.

    Non-exported names, attributes of frozen dataclasses and read-only
    properties are not assignable.

    Args:
        instance: Injection target.
        name: Attribute name.

    """
    if not is_exported(name):
        return False
    params = getattr(type(instance), "__dataclass_params__", None)
    if params is not None and params.frozen:
        return False
    attribute = inspect.getattr_static(type(instance), name, None)
    return not (isinstance(attribute, property) and attribute.fset is None)


def is_callable_target(target: object) -> bool:
    """Return whether target is injected as a callable rather than as an object.

    Args:
        target: Value passed to ``Container.inject``.

    """
    return inspect.isroutine(target) or isinstance(target, functools.partial)


def is_compatible(value: object, annotation: Any) -> bool:
    """Return whether value may be stored under the given singular annotation.

    Non-runtime protocols cannot be checked and always pass.

    Args:
        value: Produced or preconstructed value.
        annotation: Output type key.

    """
    annotation = strip_annotated(annotation)
    kind = classify(annotation)
    if kind is TypeKind.CALLABLE:
        return callable(value)
    if kind is not TypeKind.INSTANCE:
        return True
    if getattr(annotation, "_is_protocol", False) and not getattr(
        annotation,
        "_is_runtime_protocol",
        False,
    ):
        return True
    return isinstance(value, annotation)


def type_name(annotation: Any) -> str:
    """Return a short readable name for an annotation, used in errors and graphs.

    Args:
        annotation: Annotation to render. ``Annotated`` metadata is dropped.

    """
    annotation = strip_annotated(annotation)
    if isinstance(annotation, list):
        return "[" + ", ".join(type_name(item) for item in annotation) + "]"
    origin = get_origin(annotation)
    if origin is not None:
        origin_name = getattr(origin, "__qualname__", None) or repr(origin).removeprefix("typing.")
        annotation_args = get_args(annotation)
        if not annotation_args:
            return origin_name
        return f"{origin_name}[{', '.join(type_name(arg) for arg in annotation_args)}]"
    if annotation is type(None):
        return "None"
    if annotation is Ellipsis:
        return "..."
    if is_runtime_class(annotation):
        return annotation.__qualname__
    return repr(annotation).removeprefix("typing.")


def callable_name(fn: Any) -> str:
    if isinstance(fn, functools.partial):
        return f"partial({callable_name(fn.func)})"
    return getattr(fn, "__qualname__", None) or getattr(fn, "__name__", None) or repr(fn)


def callable_location(fn: Any) -> str:
    """Return ``module.qualname (file:line)`` for a callable where available.

    Args:
        fn: Provider or injection target.

    """
    target = fn.func if isinstance(fn, functools.partial) else fn
    target = getattr(target, "__func__", target)
    target = inspect.unwrap(target)
    name = f"{getattr(target, '__module__', None) or '<unknown>'}.{callable_name(target)}"
    code = getattr(target, "__code__", None)
    if code is None:
        return name
    return f"{name} ({code.co_filename}:{code.co_firstlineno})"


def resolved_type_hints(obj: Any) -> tuple[dict[str, Any], Exception | None]:
    """Return resolved annotations of obj and the error raised while resolving them.

    Args:
        obj: Callable or class whose annotations are resolved.

    """
    try:
        return get_type_hints(obj, include_extras=True), None
    except (AttributeError, NameError, TypeError) as error:
        return {}, error


__all__ = [
    "SINGULAR_KINDS",
    "RecordField",
    "TypeKind",
    "callable_location",
    "callable_name",
    "classify",
    "is_assignable",
    "is_callable_target",
    "is_compatible",
    "is_exported",
    "is_record_type",
    "is_runtime_class",
    "mapping_types",
    "object_fields",
    "record_fields",
    "resolved_type_hints",
    "sequence_element",
    "split_annotated",
    "strip_annotated",
    "type_name",
]
