from __future__ import annotations

import copy
import logging
import time
from collections.abc import Iterable, Iterator, Mapping
from dataclasses import dataclass, field
from typing import Any

from dix._internal.providers import (
    Dependency,
    Multiplicity,
    ProviderNode,
    ProviderOutput,
    ProvidersRegistry,
    TypeKey,
    record_dependencies,
)
from dix._internal.reflection import classify, is_compatible, type_name
from dix.exceptions import (
    DixCyclicDependencyError,
    DixError,
    DixInvocationError,
    DixNotFoundError,
    DixValidationError,
)
from dix.markers import DEFAULT_GROUP, normalize_group
from dix.options import Options

logger = logging.getLogger(__name__)


class ObjectStore:
    """Append-only store of produced values keyed by type and group.

    Values are kept in insertion order. Singular resolution reads the last
    value of a group; nothing is ever overwritten or removed.
    """

    def __init__(self) -> None:
        self._values: dict[TypeKey, dict[str, list[Any]]] = {}

    def add(self, provides: TypeKey, value: Any, group: str = DEFAULT_GROUP) -> None:
        """Append a value under ``(provides, group)``. ``None`` is never stored.

        Args:
            provides: Type key the value satisfies.
            value: Produced or preconstructed value.
            group: Normalized group label.

        """
        if value is None:
            return
        self._values.setdefault(provides, {}).setdefault(group, []).append(value)

    def last(self, provides: TypeKey, group: str = DEFAULT_GROUP) -> Any:
        """Return the last value stored under ``(provides, group)``, or ``None``.

        Args:
            provides: Requested type key.
            group: Normalized group label.

        """
        values = self._values.get(provides, {}).get(group)
        return values[-1] if values else None

    def values(self, provides: TypeKey, group: str = DEFAULT_GROUP) -> list[Any]:
        return list(self._values.get(provides, {}).get(group, ()))

    def groups(self, provides: TypeKey) -> dict[str, list[Any]]:
        return {group: list(values) for group, values in self._values.get(provides, {}).items()}

    def items(self) -> Iterator[tuple[TypeKey, str, Any]]:
        """Iterate ``(type, group, value)`` triples in insertion order."""
        for provides, groups in self._values.items():
            for group, values in groups.items():
                for value in values:
                    yield provides, group, value

    def __contains__(self, provides: object) -> bool:
        return provides in self._values


@dataclass(slots=True)
class Resolver:
    """Produces values for dependencies by evaluating providers once and reading the store."""

    registry: ProvidersRegistry
    store: ObjectStore
    _evaluating: list[ProviderNode] = field(default_factory=list)

    def resolve(self, dependency: Dependency, options: Options) -> Any:
        """Return the value a dependency asks for.

        Args:
            dependency: Descriptor of the requested value.
            options: Effective options of the current request.

        """
        if dependency.is_record:
            return self.resolve_record(dependency.provides, options)

        provides = dependency.provides
        self.ensure_evaluated(provides, options)

        if dependency.multiplicity is Multiplicity.SINGULAR:
            value = self.store.last(provides, dependency.group)
            if value is None and not options.allow_values_null:
                raise DixNotFoundError.for_type(provides, group=dependency.group)
            return value

        if dependency.multiplicity is Multiplicity.LISTED:
            values = self.store.values(provides, dependency.group)
            if not values and not options.allow_values_null:
                raise DixNotFoundError.for_type(
                    provides,
                    group=dependency.group,
                    resolve_type="list",
                )
            return values

        groups = self.store.groups(provides)
        if dependency.multiplicity is Multiplicity.KEYED:
            keyed: dict[str, Any] = {group: values[-1] for group, values in groups.items()}
        else:
            keyed = groups
        if not keyed and not options.allow_values_null:
            raise DixNotFoundError.for_type(provides, resolve_type="map")
        return keyed

    def resolve_record(self, record_type: type[Any], options: Options) -> Any:
        """Build a fresh record whose fields are resolved one by one.

        Fields of unsupported kinds keep their defaults; without a default they
        are rejected.

        Args:
            record_type: ``NamedTuple`` class to build.
            options: Effective options of the current request.

        """
        values: dict[str, Any] = {}
        for record_field, dependency in record_dependencies(record_type):
            if dependency is None:
                if record_field.has_default:
                    continue
                raise DixValidationError(
                    "unsupported record field kind",
                    record=type_name(record_type),
                    field_name=record_field.name,
                    type=type_name(record_field.annotation),
                    kind=classify(record_field.annotation).value,
                )
            try:
                value = self.resolve(dependency, options)
            except DixError as error:
                annotate_error(error, field_name=record_field.name)
                raise
            if value is None and record_field.has_default:
                continue
            values[record_field.name] = value
        return record_type(**values)

    def resolve_arguments(
        self,
        dependencies: Iterable[Dependency],
        options: Options,
        *,
        target_name: str,
    ) -> tuple[list[Any], dict[str, Any]]:
        """Resolve call arguments for a provider or an injection target.

        Args:
            dependencies: Parameter dependencies in signature order.
            options: Effective options of the current request.
            target_name: Qualified name of the callable, added to error details.

        """
        args: list[Any] = []
        kwargs: dict[str, Any] = {}
        for dependency in dependencies:
            try:
                value = self.resolve(dependency, options)
            except DixError as error:
                annotate_error(error, parameter=dependency.name, target=target_name)
                raise
            if dependency.keyword:
                kwargs[dependency.name] = value
            else:
                args.append(value)
        return args, kwargs

    def ensure_evaluated(self, provides: TypeKey, options: Options) -> None:
        """Evaluate every pending provider of a type in registration order.

        Args:
            provides: Requested type key.
            options: Options used to resolve provider inputs.

        """
        nodes = self.registry.get_by_type(provides)
        if not nodes:
            if provides not in self.store:
                logger.warning("No providers or stored values: type=%s", type_name(provides))
            return
        for node in nodes:
            if node.failure is not None:
                raise copy.copy(node.failure)
            if not node.initialized:
                self.evaluate(node, options)

    def evaluate(self, node: ProviderNode, options: Options) -> None:
        """Run a provider once and distribute its values into the store.

        Failures raised while running the provider or storing its values are
        memoised on the node. Later requests for its types raise a fresh copy,
        so details added along one request path do not leak into another.

        Args:
            node: Provider node to evaluate.
            options: Options used to resolve the provider inputs.

        """
        if node in self._evaluating:
            cycle = self._evaluating[self._evaluating.index(node) :]
            raise DixCyclicDependencyError(
                [member.output_types[0] for member in cycle],
                message="circular dependency detected during resolution",
            ).with_detail("provider", node.name)

        self._evaluating.append(node)
        try:
            args, kwargs = self.resolve_arguments(node.inputs, options, target_name=node.name)
            logger.debug("Evaluating provider: name=%s", node.name)
            started = time.perf_counter()
            try:
                self._run(node, args, kwargs)
            except DixError as error:
                node.failure = copy.copy(error)
                raise
            node.initialized = True
            logger.debug(
                "Evaluated provider: name=%s elapsed_ms=%.3f",
                node.name,
                (time.perf_counter() - started) * 1000,
            )
        finally:
            self._evaluating.pop()

    def _run(self, node: ProviderNode, args: list[Any], kwargs: dict[str, Any]) -> None:
        try:
            value, failure = node.split_result(node.provider(*args, **kwargs))
        except DixError:
            raise
        except Exception as error:
            raise self._invocation_error(node, "provider raised an exception") from error

        if failure is not None:
            invocation_error = self._invocation_error(node, "provider reported a failure")
            if isinstance(failure, BaseException):
                raise invocation_error from failure
            raise invocation_error.with_detail("failure", repr(failure))

        self._distribute(node, value)

    def _distribute(self, node: ProviderNode, value: Any) -> None:
        for output in node.outputs:
            produced = value
            for attribute in output.path:
                if produced is None:
                    break
                try:
                    produced = getattr(produced, attribute)
                except AttributeError as error:
                    raise self._mismatch_error(node, output, produced).with_detail(
                        "missing_field",
                        attribute,
                    ) from error
            if produced is None:
                continue
            self._store_output(node, output, produced)

    def _store_output(self, node: ProviderNode, output: ProviderOutput, produced: Any) -> None:
        if output.multiplicity is Multiplicity.SINGULAR:
            self._store_value(node, output, produced, output.group)
            return

        if output.multiplicity is Multiplicity.LISTED:
            for element in self._iterate(node, output, produced):
                self._store_value(node, output, element, output.group)
            return

        if not isinstance(produced, Mapping):
            raise self._mismatch_error(node, output, produced)
        for key, entry in produced.items():
            if entry is None:
                continue
            group = normalize_group(key)
            if output.multiplicity is Multiplicity.KEYED:
                self._store_value(node, output, entry, group)
                continue
            for element in self._iterate(node, output, entry):
                self._store_value(node, output, element, group)

    def _iterate(self, node: ProviderNode, output: ProviderOutput, produced: Any) -> list[Any]:
        if isinstance(produced, (str, bytes, Mapping)) or not isinstance(produced, Iterable):
            raise self._mismatch_error(node, output, produced)
        return [element for element in produced if element is not None]

    def _store_value(
        self,
        node: ProviderNode,
        output: ProviderOutput,
        value: Any,
        group: str,
    ) -> None:
        if value is None:
            return
        if not is_compatible(value, output.provides):
            raise self._mismatch_error(node, output, value)
        self.store.add(output.provides, value, group)

    def _mismatch_error(
        self,
        node: ProviderNode,
        output: ProviderOutput,
        value: Any,
    ) -> DixInvocationError:
        return self._invocation_error(
            node,
            "provider produced a value of an unexpected type",
            output_type=type_name(output.provides),
        ).with_detail("value_type", type(value).__qualname__)

    def _invocation_error(
        self,
        node: ProviderNode,
        message: str,
        **details: Any,
    ) -> DixInvocationError:
        details.setdefault(
            "output_type",
            ", ".join(type_name(provides) for provides in node.output_types),
        )
        return DixInvocationError(
            message,
            provider=node.name,
            location=node.location,
            **details,
        )


def annotate_error(error: DixError, **details: str) -> None:
    """Add details the error does not carry yet, keeping those set closer to the failure.

    Args:
        error: Error propagating through the resolution stack.
        **details: Detail entries; empty values are ignored.

    """
    for key, value in details.items():
        if value and key not in error.details:
            error.with_detail(key, value)


__all__ = ["ObjectStore", "Resolver", "annotate_error"]
