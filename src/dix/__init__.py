from dix._internal.renderer import Graph
from dix.container import Container
from dix.exceptions import (
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
from dix.markers import DEFAULT_GROUP, Group
from dix.options import INJECT_METHOD_PREFIX, Options

__all__ = [
    "DEFAULT_GROUP",
    "INJECT_METHOD_PREFIX",
    "Container",
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
    "Options",
    "get_error_details",
    "is_error_type",
]
