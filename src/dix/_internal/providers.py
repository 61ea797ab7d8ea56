from __future__ import annotations

import functools
import inspect
import logging
import types
from collections.abc import Callable, Iterator
from dataclasses import dataclass, field
from enum import Enum, auto
from inspect import Parameter
from typing import Any, TypeAlias, Union, get_args, get_origin

from dix._internal.reflection import (
    SINGULAR_KINDS,
    RecordField,
    TypeKind,
    callable_location,
    callable_name,
    classify,
    is_exported,
    is_runtime_class,
    mapping_types,
    record_fields,
    resolved_type_hints,
    sequence_element,
    split_annotated,
    type_name,
)
from dix.exceptions import DixError, DixProviderError, DixValidationError
from dix.markers import DEFAULT_GROUP

logger = logging.getLogger(__name__)

TypeKey: TypeAlias = Any
"""An annotation with ``Annotated`` metadata stripped. Keys the registry and the object store."""

UserProvider: TypeAlias = Callable[..., Any]
"""A function, method, class or ``functools.partial`` registered by the user as a provider."""

_MISSING_ANNOTATION: Any = object()
_PAIR_LENGTH = 2


class Multiplicity(Enum):
    """Describe how many values a dependency or an output carries."""

    SINGULAR = auto()
    """One value: the last one stored for the group."""

    LISTED = auto()
    """A list of every value stored for the group, in insertion order."""

    KEYED = auto()
    """A mapping from each group to its last value."""

    KEYED_LIST = auto()
    """A mapping from each group to the list of its values."""


@dataclass(frozen=True, slots=True)
class Dependency:
    """Describe a value required by a provider parameter, target parameter or attribute."""

    provides: TypeKey
    multiplicity: Multiplicity = Multiplicity.SINGULAR
    group: str = DEFAULT_GROUP
    is_record: bool = False
    """Resolve a fresh record whose fields are resolved one by one."""
    name: str = ""
    """Parameter, attribute or record field name."""
    keyword: bool = False
    """Pass the resolved value by keyword instead of by position."""


@dataclass(frozen=True, slots=True)
class ProviderOutput:
    """Describe one kind of value a provider puts into the object store."""

    provides: TypeKey
    multiplicity: Multiplicity = Multiplicity.SINGULAR
    group: str = DEFAULT_GROUP
    path: tuple[str, ...] = ()
    """Attribute path of the value inside a destructured record result."""


@dataclass(kw_only=True, eq=False)
class ProviderNode:
    """A registered provider with its derived input and output shape.

    A node is shared by every output it declares, so a destructured record
    result runs the callable once no matter which output triggered it.
    """

    provider: UserProvider
    inputs: tuple[Dependency, ...]
    outputs: tuple[ProviderOutput, ...]
    name: str
    location: str

    may_fail: bool = False
    """The provider returns a ``(value, failure)`` pair."""
    unwrap_single: bool = False
    """The provider returns a one-element tuple."""

    initialized: bool = False
    """Whether the provider has already been evaluated."""
    failure: DixError | None = field(default=None, repr=False)
    """The memoised evaluation failure, re-raised on later requests."""

    @property
    def output_types(self) -> list[TypeKey]:
        """Return the distinct output type keys in declaration order."""
        return list(dict.fromkeys(output.provides for output in self.outputs))

    def split_result(self, result: Any) -> tuple[Any, Any]:
        """Split a raw provider result into the produced value and the failure, if any.

        Args:
            result: Value returned by the provider callable.

        """
        if self.may_fail:
            value, failure = result
            return value, failure
        if self.unwrap_single:
            return result[0], None
        return result, None


class ProvidersRegistry:
    """Holds provider nodes keyed by every type they produce, in registration order."""

    def __init__(self) -> None:
        self._nodes: list[ProviderNode] = []
        self._nodes_by_type: dict[TypeKey, list[ProviderNode]] = {}

    def add(self, node: ProviderNode) -> None:
        """Append a node to the registration list of each of its output types.

        Args:
            node: Inspected provider node.

        """
        self._nodes.append(node)
        for provides in node.output_types:
            self._nodes_by_type.setdefault(provides, []).append(node)
        logger.debug(
            "Registered provider: name=%s outputs=%s",
            node.name,
            ", ".join(type_name(provides) for provides in node.output_types),
        )

    def remove(self, node: ProviderNode) -> None:
        """Remove a node added by ``add``. Used to roll back a rejected registration.

        Args:
            node: Node previously passed to ``add``.

        """
        self._nodes.remove(node)
        for provides in node.output_types:
            nodes = self._nodes_by_type.get(provides)
            if nodes is None:
                continue
            nodes.remove(node)
            if not nodes:
                del self._nodes_by_type[provides]
        logger.debug("Rolled back provider registration: name=%s", node.name)

    def get_by_type(self, provides: TypeKey) -> list[ProviderNode]:
        return list(self._nodes_by_type.get(provides, ()))

    def types(self) -> list[TypeKey]:
        """Get every provided type in first-registration order."""
        return list(self._nodes_by_type)

    def values(self) -> list[ProviderNode]:
        """Get all provider nodes in registration order."""
        return list(self._nodes)


def describe_dependency(
    annotation: Any,
    *,
    name: str = "",
    keyword: bool = False,
) -> Dependency | None:
    """Derive the dependency an annotation asks for, or ``None`` for unsupported kinds.

    Args:
        annotation: Parameter, attribute or field annotation, optionally ``Annotated``.
        name: Parameter, attribute or field name carried into the descriptor.
        keyword: Whether the value is passed by keyword.

    """
    bare, group = split_annotated(annotation)
    kind = classify(bare)
    if kind in SINGULAR_KINDS:
        return Dependency(
            provides=bare,
            group=group or DEFAULT_GROUP,
            name=name,
            keyword=keyword,
        )
    if kind is TypeKind.RECORD:
        return Dependency(provides=bare, is_record=True, name=name, keyword=keyword)
    if kind is TypeKind.SEQUENCE:
        element = sequence_element(bare)
        element_bare, element_group = split_annotated(element)
        if classify(element_bare) not in SINGULAR_KINDS:
            return None
        return Dependency(
            provides=element_bare,
            multiplicity=Multiplicity.LISTED,
            group=group or element_group or DEFAULT_GROUP,
            name=name,
            keyword=keyword,
        )
    if kind is TypeKind.MAPPING:
        key, value = mapping_types(bare)
        if key is not str:
            return None
        value_bare, _ = split_annotated(value)
        multiplicity = Multiplicity.KEYED
        if classify(value_bare) is TypeKind.SEQUENCE:
            multiplicity = Multiplicity.KEYED_LIST
            value_bare, _ = split_annotated(sequence_element(value_bare))
        if classify(value_bare) not in SINGULAR_KINDS:
            return None
        return Dependency(
            provides=value_bare,
            multiplicity=multiplicity,
            name=name,
            keyword=keyword,
        )
    return None


def describe_outputs(annotation: Any, *, path: tuple[str, ...] = ()) -> list[ProviderOutput]:
    """Derive the outputs a provider return annotation declares.

    Record annotations are destructured into one output per exported field of a
    supported kind. An unsupported annotation yields no outputs.

    Args:
        annotation: Return annotation, optionally ``Annotated``.
        path: Attribute path of ``annotation`` inside an enclosing record.

    """
    dependency = describe_dependency(annotation)
    if dependency is None:
        return []
    if not dependency.is_record:
        return [
            ProviderOutput(
                provides=dependency.provides,
                multiplicity=dependency.multiplicity,
                group=dependency.group,
                path=path,
            ),
        ]
    outputs: list[ProviderOutput] = []
    for record_field in record_fields(dependency.provides):
        if not is_exported(record_field.name):
            continue
        outputs.extend(
            describe_outputs(record_field.annotation, path=(*path, record_field.name)),
        )
    return outputs


def record_dependencies(record_type: type[Any]) -> list[tuple[RecordField, Dependency | None]]:
    """Return each field of a record with the dependency it asks for.

    The dependency is ``None`` for fields of unsupported kinds.

    Args:
        record_type: ``NamedTuple`` class to inspect.

    """
    try:
        fields = record_fields(record_type)
    except (AttributeError, NameError, TypeError) as error:
        raise DixProviderError(
            "unable to resolve record field annotations",
            record=type_name(record_type),
        ) from error
    return [
        (
            record_field,
            describe_dependency(record_field.annotation, name=record_field.name, keyword=True),
        )
        for record_field in fields
    ]


def flatten_dependency(
    dependency: Dependency,
    *,
    seen_records: set[TypeKey] | None = None,
) -> Iterator[TypeKey]:
    """Yield the type keys a dependency consumes, expanding records into their field types.

    Args:
        dependency: Dependency to flatten.
        seen_records: Records already expanded on the current path.

    """
    if not dependency.is_record:
        yield dependency.provides
        return
    seen_records = set() if seen_records is None else seen_records
    if dependency.provides in seen_records:
        return
    seen_records.add(dependency.provides)
    for _, field_dependency in record_dependencies(dependency.provides):
        if field_dependency is not None:
            yield from flatten_dependency(field_dependency, seen_records=seen_records)


def is_failure_annotation(annotation: Any) -> bool:
    """Return whether annotation names an exception type, optionally ``| None``.

    Args:
        annotation: Second element of a provider tuple result, or a target return annotation.

    """
    bare, _ = split_annotated(annotation)
    if get_origin(bare) in (Union, types.UnionType):
        members = [member for member in get_args(bare) if member is not type(None)]
        return bool(members) and all(is_failure_annotation(member) for member in members)
    return is_runtime_class(bare) and issubclass(bare, BaseException)


@dataclass(slots=True)
class CallableParametersExtractor:
    """Extracts dependency descriptors from the parameters of a callable."""

    def extract(self, target: Callable[..., Any], *, target_name: str) -> list[Dependency]:
        """Return one dependency per injectable parameter of ``target``.

        Parameters of unsupported kinds that carry a default keep their default
        and are not dependencies. Keyword arguments already bound by a
        ``functools.partial`` are not dependencies either.

        Args:
            target: Provider or injection target.
            target_name: Qualified name used in error details.

        """
        parameters = self._parameters(target, target_name=target_name)
        annotations, annotation_error = resolved_type_hints(self._hints_source(target))
        bound_keywords = target.keywords if isinstance(target, functools.partial) else {}
        dependencies: list[Dependency] = []
        positional_closed = False

        for parameter in parameters:
            if parameter.kind in (Parameter.VAR_POSITIONAL, Parameter.VAR_KEYWORD):
                raise DixValidationError(
                    "variadic parameters are not supported",
                    target=target_name,
                    parameter=parameter.name,
                )
            if parameter.name in bound_keywords:
                continue
            is_positional = parameter.kind is Parameter.POSITIONAL_ONLY
            if is_positional and positional_closed:
                continue

            annotation = self._resolve_parameter_annotation(
                parameter=parameter,
                annotations=annotations,
                annotation_error=annotation_error,
                target_name=target_name,
            )
            dependency = None
            if annotation is not _MISSING_ANNOTATION:
                dependency = describe_dependency(
                    annotation,
                    name=parameter.name,
                    keyword=not is_positional,
                )
            if dependency is not None:
                dependencies.append(dependency)
                continue
            if parameter.default is not Parameter.empty:
                positional_closed = positional_closed or is_positional
                continue
            raise DixValidationError(
                "unsupported parameter kind",
                target=target_name,
                parameter=parameter.name,
                type=type_name(annotation),
                kind=classify(annotation).value,
            )

        return dependencies

    def _parameters(
        self,
        target: Callable[..., Any],
        *,
        target_name: str,
    ) -> tuple[Parameter, ...]:
        try:
            return tuple(inspect.signature(target).parameters.values())
        except (TypeError, ValueError) as error:
            raise DixProviderError(
                "unable to read callable signature",
                target=target_name,
            ) from error

    def _hints_source(self, target: Callable[..., Any]) -> Any:
        if isinstance(target, functools.partial):
            return self._hints_source(target.func)
        if inspect.isclass(target):
            return target.__init__
        return target

    def _resolve_parameter_annotation(
        self,
        *,
        parameter: Parameter,
        annotations: dict[str, Any],
        annotation_error: Exception | None,
        target_name: str,
    ) -> Any:
        annotation = annotations.get(parameter.name, _MISSING_ANNOTATION)
        if annotation is not _MISSING_ANNOTATION:
            return annotation

        raw_annotation = parameter.annotation
        if raw_annotation is not Parameter.empty and not isinstance(raw_annotation, str):
            return raw_annotation

        if parameter.default is not Parameter.empty:
            return _MISSING_ANNOTATION

        error = DixProviderError(
            "unable to infer dependency for required parameter; add a type annotation",
            target=target_name,
            parameter=parameter.name,
        )
        if annotation_error is None:
            raise error
        raise error.with_detail("annotation_error", annotation_error) from annotation_error


@dataclass(slots=True)
class ProviderInspector:
    """Builds provider nodes from user-defined provider callables."""

    parameters: CallableParametersExtractor = field(default_factory=CallableParametersExtractor)

    def inspect(self, provider: UserProvider) -> ProviderNode:
        """Derive the node of a provider, validating its registration shape.

        Args:
            provider: Function, method, ``functools.partial`` or class to register.

        """
        if provider is None:
            raise DixValidationError("provider must not be None")
        if not callable(provider):
            raise DixValidationError(
                "provider must be callable",
                provider_type=type(provider).__name__,
            )
        provider_name = callable_name(provider)
        if inspect.isclass(provider) and inspect.isabstract(provider):
            raise DixValidationError("abstract classes cannot be providers", provider=provider_name)

        inputs = self.parameters.extract(provider, target_name=provider_name)
        primary, may_fail, unwrap_single = self._primary_annotation(
            provider,
            provider_name=provider_name,
        )
        try:
            outputs = describe_outputs(primary)
        except (AttributeError, NameError, TypeError) as error:
            raise DixProviderError(
                "unable to resolve record output annotations",
                provider=provider_name,
                type=type_name(primary),
            ) from error
        if not outputs:
            raise DixValidationError(
                "unsupported provider output",
                provider=provider_name,
                position="return",
                type=type_name(primary),
                kind=classify(primary).value,
            )

        return ProviderNode(
            provider=provider,
            inputs=tuple(inputs),
            outputs=tuple(outputs),
            name=provider_name,
            location=callable_location(provider),
            may_fail=may_fail,
            unwrap_single=unwrap_single,
        )

    def _primary_annotation(
        self,
        provider: UserProvider,
        *,
        provider_name: str,
    ) -> tuple[Any, bool, bool]:
        if inspect.isclass(provider):
            return provider, False, False

        return_annotation, annotation_error = self._resolved_return_annotation(provider)
        if return_annotation is _MISSING_ANNOTATION:
            error = DixProviderError(
                "unable to infer provider output; add a return type annotation",
                provider=provider_name,
            )
            if annotation_error is None:
                raise error
            raise error.with_detail("annotation_error", annotation_error) from annotation_error

        bare, _ = split_annotated(return_annotation)
        if bare is None or bare is type(None):
            raise DixValidationError(
                "provider must return at least one value",
                provider=provider_name,
                position="return",
            )
        if get_origin(bare) is not tuple:
            return return_annotation, False, False

        annotation_args = get_args(bare)
        if len(annotation_args) == 1 and annotation_args[0] is not Ellipsis:
            return annotation_args[0], False, True
        if len(annotation_args) == _PAIR_LENGTH and is_failure_annotation(annotation_args[1]):
            return annotation_args[0], True, False
        raise DixValidationError(
            "provider must return a value or a (value, failure) pair",
            provider=provider_name,
            position="return",
            type=type_name(bare),
        )

    def _resolved_return_annotation(self, provider: UserProvider) -> tuple[Any, Exception | None]:
        hints_source = provider.func if isinstance(provider, functools.partial) else provider
        return_type_hints, annotation_error = resolved_type_hints(hints_source)
        resolved_return_annotation = return_type_hints.get("return", _MISSING_ANNOTATION)
        if resolved_return_annotation is not _MISSING_ANNOTATION:
            return resolved_return_annotation, annotation_error

        try:
            raw_return_annotation = inspect.signature(provider).return_annotation
        except (TypeError, ValueError) as error:
            return _MISSING_ANNOTATION, annotation_error or error

        if raw_return_annotation is inspect.Signature.empty or isinstance(
            raw_return_annotation,
            str,
        ):
            return _MISSING_ANNOTATION, annotation_error

        return raw_return_annotation, annotation_error


__all__ = [
    "CallableParametersExtractor",
    "Dependency",
    "Multiplicity",
    "ProviderInspector",
    "ProviderNode",
    "ProviderOutput",
    "ProvidersRegistry",
    "TypeKey",
    "UserProvider",
    "describe_dependency",
    "describe_outputs",
    "flatten_dependency",
    "is_failure_annotation",
    "record_dependencies",
]
