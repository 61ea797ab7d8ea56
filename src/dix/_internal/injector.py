from __future__ import annotations

import functools
import inspect
import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

from dix._internal.providers import (
    CallableParametersExtractor,
    describe_dependency,
    is_failure_annotation,
)
from dix._internal.reflection import (
    TypeKind,
    callable_name,
    classify,
    is_assignable,
    is_callable_target,
    is_record_type,
    object_fields,
    resolved_type_hints,
    split_annotated,
    type_name,
)
from dix._internal.resolver import Resolver, annotate_error
from dix.exceptions import DixError, DixProviderError, DixValidationError
from dix.options import Options

logger = logging.getLogger(__name__)

_MISSING_ANNOTATION: Any = object()


@dataclass(slots=True)
class Injector:
    """Injects resolved values into callables and objects.

    Callables receive their parameters and are invoked. Objects first get
    every method whose name starts with the configured prefix injected, then
    their annotated public attributes assigned.
    """

    resolver: Resolver
    parameters: CallableParametersExtractor = field(default_factory=CallableParametersExtractor)

    def inject(self, target: Any, options: Options) -> BaseException | None:
        """Inject a target and return the failure it reported, if any.

        Args:
            target: Function, method, ``functools.partial`` or object instance.
            options: Effective options of the current request.

        """
        if target is None:
            raise DixValidationError("injection target must not be None")
        if is_callable_target(target):
            return self.inject_callable(target, options)

        self._validate_object_target(target)
        failure = self.inject_methods(target, options)
        if failure is not None:
            return failure
        self.inject_attributes(target, options)
        return None

    def inject_callable(
        self,
        target: Callable[..., Any],
        options: Options,
    ) -> BaseException | None:
        """Resolve the parameters of ``target``, call it and return its failure, if any.

        Args:
            target: Callable accepting at least one parameter and returning
                nothing or an exception.
            options: Effective options of the current request.

        """
        target_name = callable_name(target)
        self._validate_callable_return(target, target_name=target_name)
        dependencies = self.parameters.extract(target, target_name=target_name)
        if not inspect.signature(target).parameters:
            raise DixValidationError(
                "injection callable must accept at least one parameter",
                target=target_name,
            )

        args, kwargs = self.resolver.resolve_arguments(
            dependencies,
            options,
            target_name=target_name,
        )
        result = target(*args, **kwargs)
        if isinstance(result, BaseException):
            logger.debug("Injected callable reported a failure: target=%s", target_name)
            return result
        return None

    def inject_methods(self, target: Any, options: Options) -> BaseException | None:
        """Inject every prefixed method of ``target`` in name order.

        Args:
            target: Object instance.
            options: Effective options of the current request.

        """
        prefix = options.inject_method_prefix
        for name in sorted(dir(type(target))):
            if not name.startswith(prefix):
                continue
            method = getattr(target, name)
            if not callable(method):
                continue
            logger.debug(
                "Injecting method: target=%s method=%s",
                type(target).__qualname__,
                name,
            )
            failure = self.inject_callable(method, options)
            if failure is not None:
                return failure
        return None

    def inject_attributes(self, target: Any, options: Options) -> None:
        """Assign resolved values to the annotated public attributes of ``target``.

        Attributes that cannot be assigned are skipped. Attributes of
        unsupported kinds are skipped when they already hold a value and
        rejected otherwise. A ``None`` result leaves the attribute untouched.

        Args:
            target: Object instance.
            options: Effective options of the current request.

        """
        target_name = type(target).__qualname__
        try:
            fields = object_fields(target)
        except (AttributeError, NameError, TypeError) as error:
            raise DixProviderError(
                "unable to resolve target attribute annotations",
                target=target_name,
            ) from error

        for target_field in fields:
            if not is_assignable(target, target_field.name):
                logger.debug(
                    "Skipping attribute: target=%s attribute=%s reason=unassignable",
                    target_name,
                    target_field.name,
                )
                continue

            dependency = describe_dependency(target_field.annotation, name=target_field.name)
            if dependency is None:
                if target_field.has_default:
                    logger.debug(
                        "Skipping attribute: target=%s attribute=%s reason=unsupported",
                        target_name,
                        target_field.name,
                    )
                    continue
                raise DixValidationError(
                    "unsupported attribute kind",
                    target=target_name,
                    field_name=target_field.name,
                    type=type_name(target_field.annotation),
                    kind=classify(target_field.annotation).value,
                )

            try:
                value = self.resolver.resolve(dependency, options)
            except DixError as error:
                annotate_error(error, field_name=target_field.name, target=target_name)
                raise
            if value is None:
                continue
            setattr(target, target_field.name, value)

    def _validate_object_target(self, target: Any) -> None:
        if inspect.isclass(target):
            raise DixValidationError(
                "classes cannot be injected; pass an instance",
                target=type_name(target),
            )
        if is_record_type(type(target)):
            raise DixValidationError(
                "record values cannot be injected; inject an object or a callable",
                target=type_name(type(target)),
            )
        if classify(type(target)) is TypeKind.UNSUPPORTED:
            raise DixValidationError(
                "unsupported injection target",
                target=type_name(type(target)),
                kind=TypeKind.UNSUPPORTED.value,
            )

    def _validate_callable_return(self, target: Callable[..., Any], *, target_name: str) -> None:
        hints_source = target.func if isinstance(target, functools.partial) else target
        hints, _ = resolved_type_hints(hints_source)
        return_annotation = hints.get("return", _MISSING_ANNOTATION)
        if return_annotation is _MISSING_ANNOTATION:
            return
        bare, _ = split_annotated(return_annotation)
        if bare is None or bare is type(None) or is_failure_annotation(bare):
            return
        raise DixValidationError(
            "injection callable must return nothing or a failure",
            target=target_name,
            position="return",
            type=type_name(bare),
        )


__all__ = ["Injector"]
