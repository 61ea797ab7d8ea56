from __future__ import annotations

from dataclasses import dataclass, replace

from dix.exceptions import DixConfigurationError

INJECT_METHOD_PREFIX = "DixInject"
"""Methods of an object target whose names start with this prefix are injected first."""


@dataclass(frozen=True)
class Options:
    """Configure how a container resolves and injects values.

    Container-level options are fixed at construction. Per-call options passed
    to ``Container.inject`` or ``Container.get`` are merged on top of them;
    ``allow_values_null`` is sticky, so once enabled for the container it stays
    enabled for every call.
    """

    allow_values_null: bool = False
    """Resolve missing values to ``None`` or empty collections instead of raising."""

    inject_method_prefix: str = INJECT_METHOD_PREFIX
    """Name prefix of the methods injected on object targets."""

    def merge(self, other: Options) -> Options:
        """Return options with ``other`` applied on top of these defaults.

        Args:
            other: Per-call options.

        """
        other.validate()
        return replace(self, allow_values_null=self.allow_values_null or other.allow_values_null)

    def validate(self) -> None:
        """Raise ``DixConfigurationError`` when an option value is invalid."""
        if not isinstance(self.allow_values_null, bool):
            raise DixConfigurationError(
                "allow_values_null must be a bool",
                actual_type=type(self.allow_values_null).__name__,
            )
        prefix = self.inject_method_prefix
        if not isinstance(prefix, str) or not prefix.isidentifier():
            raise DixConfigurationError(
                "inject_method_prefix must be a non-empty identifier",
                inject_method_prefix=repr(prefix),
            )


__all__ = ["INJECT_METHOD_PREFIX", "Options"]
