from __future__ import annotations

import logging
from collections.abc import Generator, Mapping
from contextlib import contextmanager
from typing import Any, TypeVar, overload

from dix._internal.cycles import CycleDetector
from dix._internal.injector import Injector
from dix._internal.providers import (
    ProviderInspector,
    ProviderNode,
    ProvidersRegistry,
    UserProvider,
    describe_dependency,
)
from dix._internal.reflection import (
    SINGULAR_KINDS,
    classify,
    is_compatible,
    strip_annotated,
    type_name,
)
from dix._internal.renderer import Graph, render_objects, render_providers
from dix._internal.resolver import ObjectStore, Resolver
from dix.exceptions import (
    DixCyclicDependencyError,
    DixError,
    DixInjectionError,
    DixValidationError,
)
from dix.markers import DEFAULT_GROUP, normalize_group
from dix.options import INJECT_METHOD_PREFIX, Options

logger = logging.getLogger(__name__)

T = TypeVar("T")
InjectionTarget = TypeVar("InjectionTarget")


class Container:
    """Register providers and inject the values they produce.

    Providers are callables whose parameter annotations name the values they
    consume and whose return annotation names the values they produce. Each
    provider runs at most once per container; its values are kept in an
    append-only store keyed by type and group.

    Targets are callables, whose parameters are resolved before the call, or
    objects, whose prefixed ``DixInject*`` methods are injected first and
    whose annotated public attributes are then assigned.

    Every container provides itself under the ``Container`` type.
    """

    def __init__(
        self,
        *,
        allow_values_null: bool = False,
        inject_method_prefix: str = INJECT_METHOD_PREFIX,
    ) -> None:
        """Initialize a container with its default options.

        Args:
            allow_values_null: Resolve missing values to ``None`` or empty
                collections instead of raising ``DixNotFoundError``. Per-call
                options cannot turn this off once it is enabled here.
            inject_method_prefix: Name prefix of the methods injected on object
                targets.

        Raises:
            DixConfigurationError: If an option value is invalid.

        Examples:
            .. code-block:: python

                container = Container()

                lenient_container = Container(allow_values_null=True)

        """
        options = Options(
            allow_values_null=allow_values_null,
            inject_method_prefix=inject_method_prefix,
        )
        options.validate()
        self._options = options

        self._registry = ProvidersRegistry()
        self._store = ObjectStore()
        self._provider_inspector = ProviderInspector()
        self._cycle_detector = CycleDetector(self._registry)
        self._resolver = Resolver(self._registry, self._store)
        self._injector = Injector(self._resolver)

        self.provide(self._provide_self)

    @property
    def options(self) -> Options:
        """Return the container-level options."""
        return self._options

    def provide(self, provider: UserProvider) -> None:
        """Register a provider.

        The provider's parameters name the values it consumes. Its return
        annotation names what it produces: a class or callable type, a
        ``list[T]``, a ``dict[str, T]`` or ``dict[str, list[T]]`` keyed by
        group, or a ``NamedTuple`` whose fields are stored one by one. A
        ``tuple[T, Exception | None]`` return reports a failure through its
        second element. Classes are providers of themselves.

        Args:
            provider: Function, method, ``functools.partial`` or class.

        Raises:
            DixValidationError: If the provider shape is not supported.
            DixProviderError: If the provider annotations cannot be resolved.
            DixCyclicDependencyError: If the provider closes a dependency
                cycle. The registration is rolled back.

        Examples:
            .. code-block:: python

                def build_config() -> Config:
                    return Config(prefix="a")


                def build_handlers() -> dict[str, Handler]:
                    return {"": Handler("default"), "admin": Handler("admin")}


                container.provide(build_config)
                container.provide(build_handlers)

        """
        with self._api_boundary("provide"):
            node = self._provider_inspector.inspect(provider)
            with self._registration(node):
                self._validate_cycles()

    def inject(self, target: InjectionTarget, *, allow_values_null: bool = False) -> InjectionTarget:
        """Inject a callable or an object and return it.

        A callable target must accept at least one parameter and return
        nothing or an exception. Its parameters are resolved and it is called;
        a returned exception is raised unchanged.

        An object target first has every method whose name starts with the
        configured prefix injected as a callable, in name order. Its annotated
        public attributes are then assigned.

        Args:
            target: Function, method, ``functools.partial`` or object instance.
            allow_values_null: Resolve missing values to ``None`` or empty
                collections for this call.

        Raises:
            DixValidationError: If the target or one of its parameters or
                attributes is not supported.
            DixNotFoundError: If a required value has no provider.
            DixInvocationError: If a provider failed.
            DixCyclicDependencyError: If the provider graph has a cycle.
            DixInjectionError: If the target raised an unexpected exception.

        Examples:
            .. code-block:: python

                def run(config: Config, handlers: list[Handler]) -> None:
                    serve(config.prefix, handlers)


                container.inject(run)

        """
        failure: BaseException | None = None
        with self._api_boundary("inject"):
            options = self._request_options(allow_values_null=allow_values_null)
            self._validate_cycles()
            failure = self._injector.inject(target, options)
        if failure is not None:
            raise failure
        return target

    @overload
    def get(self, dependency: type[T], *, allow_values_null: bool = False) -> T: ...

    @overload
    def get(self, dependency: Any, *, allow_values_null: bool = False) -> Any: ...

    def get(self, dependency: Any, *, allow_values_null: bool = False) -> Any:
        """Resolve a value by its annotation.

        Args:
            dependency: Class, ``Callable[...]``, ``list[T]``, ``dict[str, T]``,
                ``dict[str, list[T]]`` or ``NamedTuple`` annotation, optionally
                ``Annotated`` with a ``Group``.
            allow_values_null: Return ``None`` or an empty collection instead of
                raising when nothing is found.

        Raises:
            DixValidationError: If the annotation kind is not supported.
            DixNotFoundError: If nothing is found and nulls are not allowed.
            DixInvocationError: If a provider failed.
            DixCyclicDependencyError: If the provider graph has a cycle.

        Examples:
            .. code-block:: python

                config = container.get(Config)
                admin = container.get(Annotated[Handler, Group("admin")])
                handlers = container.get(list[Handler])

        """
        with self._api_boundary("get"):
            options = self._request_options(allow_values_null=allow_values_null)
            self._validate_cycles()
            descriptor = describe_dependency(dependency, name=type_name(dependency))
            if descriptor is None:
                raise DixValidationError(
                    "unsupported dependency type",
                    type=type_name(dependency),
                    kind=classify(dependency).value,
                )
            return self._resolver.resolve(descriptor, options)

    def graph(self) -> Graph:
        """Render the provider graph and the stored objects as DOT text."""
        with self._api_boundary("graph"):
            return Graph(
                providers=render_providers(self._registry),
                objects=render_objects(self._store),
            )

    def set_value(self, value: Any, *types: Any, group: str = DEFAULT_GROUP) -> None:
        """Store a preconstructed value.

        The value is stored under its own class and under every extra type. A
        list stores each of its non-``None`` elements. A dict stores each entry
        under the group named by its key, list entries element by element.

        Args:
            value: Object, list of objects or dict of objects keyed by group.
            *types: Extra class or ``Callable[...]`` types the value satisfies.
            group: Group of a plain or listed value.

        Raises:
            DixValidationError: If the value is ``None`` or not an object, or
                if it does not satisfy one of the extra types.

        Examples:
            .. code-block:: python

                container.set_value(PostgresRepository(dsn), Repository)
                container.set_value({"admin": AdminHandler(), "": Handler()})

        """
        with self._api_boundary("set_value"):
            if value is None:
                raise DixValidationError("value must not be None")
            extra_types = self._validate_value_types(types)
            if isinstance(value, Mapping):
                for key, entry in value.items():
                    self._store_value(entry, extra_types, normalize_group(key))
            else:
                self._store_value(value, extra_types, normalize_group(group))

    def _provide_self(self) -> Container:
        return self

    def _request_options(self, *, allow_values_null: bool) -> Options:
        return self._options.merge(Options(allow_values_null=allow_values_null))

    def _validate_cycles(self) -> None:
        cycle = self._cycle_detector.find_cycle()
        if cycle:
            raise DixCyclicDependencyError(cycle)

    def _validate_value_types(self, types: tuple[Any, ...]) -> list[Any]:
        extra_types: list[Any] = []
        for extra_type in types:
            bare = strip_annotated(extra_type)
            if classify(bare) not in SINGULAR_KINDS:
                raise DixValidationError(
                    "extra value types must be classes or callables",
                    type=type_name(extra_type),
                    kind=classify(bare).value,
                )
            extra_types.append(bare)
        return extra_types

    def _store_value(
        self,
        value: Any,
        extra_types: list[Any],
        group: str,
        *,
        expand_lists: bool = True,
    ) -> None:
        if value is None:
            return
        if expand_lists and isinstance(value, list):
            for element in value:
                self._store_value(element, extra_types, group, expand_lists=False)
            return

        value_type = type(value)
        if classify(value_type) not in SINGULAR_KINDS:
            raise DixValidationError(
                "unsupported value kind",
                value_type=type_name(value_type),
                kind=classify(value_type).value,
            )
        keys = list(dict.fromkeys((value_type, *extra_types)))
        for provides in keys:
            if not is_compatible(value, provides):
                raise DixValidationError(
                    "value does not satisfy type",
                    type=type_name(provides),
                    value_type=type_name(value_type),
                )
        for provides in keys:
            self._store.add(provides, value, group)
        logger.debug(
            "Stored value: types=%s group=%s",
            ", ".join(type_name(provides) for provides in keys),
            group,
        )

    @contextmanager
    def _registration(self, node: ProviderNode) -> Generator[None, None, None]:
        self._registry.add(node)
        try:
            yield
        except DixError:
            self._registry.remove(node)
            raise

    @contextmanager
    def _api_boundary(self, operation: str) -> Generator[None, None, None]:
        try:
            yield
        except DixError:
            raise
        except Exception as error:
            raise DixInjectionError(
                "unexpected failure",
                operation=operation,
                exception_type=type(error).__qualname__,
            ) from error


__all__ = ["Container"]
