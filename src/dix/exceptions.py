from __future__ import annotations

from collections.abc import Sequence
from enum import Enum
from typing import TYPE_CHECKING, Any

from dix._internal.reflection import classify, type_name

if TYPE_CHECKING:
    from typing_extensions import Self


class ErrorType(str, Enum):
    """Classify dix failures into distinct, catchable kinds."""

    VALIDATION = "VALIDATION"
    """Malformed argument to registration or injection."""

    PROVIDER = "PROVIDER"
    """Failure constructing or inspecting a provider."""

    INJECTION = "INJECTION"
    """Unexpected failure trapped while injecting a target."""

    CYCLIC_DEPENDENCY = "CYCLIC_DEPENDENCY"
    """Cycle present in the provider graph."""

    NOT_FOUND = "NOT_FOUND"
    """No provider or stored value for a requested type."""

    INVOCATION = "INVOCATION"
    """A provider raised or reported a failure."""

    CONFIGURATION = "CONFIGURATION"
    """Invalid container options."""


class DixError(Exception):
    """Represent a base class for all dix-specific failures.

    Every error carries a message, a structured ``details`` mapping of
    free-form string values, and the wrapped cause chain (``__cause__``).
    Catch this type when you want to handle any dix error path without
    matching each concrete exception class individually.
    """

    error_type: ErrorType = ErrorType.VALIDATION

    def __init__(self, message: str, **details: Any) -> None:
        super().__init__(message)
        self.message = message
        self.details: dict[str, str] = {}
        for key, value in details.items():
            self.with_detail(key, value)

    def with_detail(self, key: str, value: Any) -> Self:
        """Attach a detail entry and return the same error for chaining.

        Args:
            key: Detail name.
            value: Detail value, stored as text.

        """
        self.details[key] = value if isinstance(value, str) else str(value)
        return self

    @property
    def cause(self) -> BaseException | None:
        """Return the wrapped cause, if any."""
        return self.__cause__

    def __str__(self) -> str:
        parts = [f"[{self.error_type.value}] {self.message}"]
        if self.details:
            details = ", ".join(f"{key}={value}" for key, value in self.details.items())
            parts.append(f"details: {details}")
        if self.__cause__ is not None:
            parts.append(f"cause: {self.__cause__}")
        return "; ".join(parts)

    def __copy__(self) -> Self:
        # Details are per copy; the cause chain is shared.
        replica = self.__class__.__new__(self.__class__)
        Exception.__init__(replica, *self.args)
        replica.__dict__.update(self.__dict__)
        replica.details = dict(self.details)
        replica.__cause__ = self.__cause__
        return replica


class DixValidationError(DixError):
    """Signal a malformed argument to registration or injection.

    Raised by ``Container.provide`` for non-callable, variadic or badly
    annotated providers, and by ``Container.inject``/``Container.get`` for
    unsupported targets, parameters or attribute kinds. The details name the
    offending parameter, attribute or return position.
    """

    error_type = ErrorType.VALIDATION


class DixProviderError(DixError):
    """Signal that a provider could not be inspected.

    Common triggers are unresolvable forward references in provider
    annotations or callables whose signature cannot be read.
    """

    error_type = ErrorType.PROVIDER


class DixInjectionError(DixError):
    """Signal an unexpected failure trapped at the public API boundary.

    Raised when an injected target or the container core raises a non-dix
    exception. The original exception is available as ``cause``.
    """

    error_type = ErrorType.INJECTION


class DixCyclicDependencyError(DixError):
    """Signal a cycle in the provider dependency graph.

    ``cycle`` holds each member type exactly once, in traversal order. The
    ``cycle_path`` detail renders it as ``A -> B -> A``.
    """

    error_type = ErrorType.CYCLIC_DEPENDENCY

    def __init__(self, cycle: Sequence[Any], message: str = "circular dependency detected") -> None:
        super().__init__(message)
        self.cycle = tuple(cycle)
        names = [type_name(member) for member in self.cycle]
        if names:
            names.append(names[0])
        self.with_detail("cycle_path", " -> ".join(names))


class DixNotFoundError(DixError):
    """Signal that no provider or stored value exists for a requested type.

    Raised for singular, listed and keyed requests that resolve to nothing
    while ``allow_values_null`` is unset.

    Typical fixes include registering a provider for the type, storing a value
    with ``Container.set_value``, or passing ``allow_values_null=True``.
    """

    error_type = ErrorType.NOT_FOUND

    @classmethod
    def for_type(cls, dependency: Any, **details: Any) -> DixNotFoundError:
        """Build a not-found error describing ``dependency``.

        Args:
            dependency: Type key that could not be resolved.
            **details: Extra detail entries.

        """
        return cls(
            "provider not found",
            type=type_name(dependency),
            kind=classify(dependency).value,
            **details,
        )


class DixInvocationError(DixError):
    """Signal that a provider failed while producing its values.

    The cause is the exception the provider raised or the failure value it
    returned. Details carry the provider location and the output type.
    """

    error_type = ErrorType.INVOCATION


class DixConfigurationError(DixError):
    """Signal invalid container options."""

    error_type = ErrorType.CONFIGURATION


def is_error_type(error: BaseException, error_type: ErrorType) -> bool:
    """Return whether ``error`` is a dix error of the given kind.

    Args:
        error: Exception to inspect.
        error_type: Expected error kind.

    """
    return isinstance(error, DixError) and error.error_type is error_type


def get_error_details(error: BaseException) -> dict[str, str] | None:
    """Return the structured details of a dix error, or ``None`` for other errors.

    Args:
        error: Exception to inspect.

    """
    if isinstance(error, DixError):
        return error.details
    return None


__all__ = [
    "DixConfigurationError",
    "DixCyclicDependencyError",
    "DixError",
    "DixInjectionError",
    "DixInvocationError",
    "DixNotFoundError",
    "DixProviderError",
    "DixValidationError",
    "ErrorType",
    "get_error_details",
    "is_error_type",
]
