from __future__ import annotations

from typing import Annotated, Any, NamedTuple, get_args, get_origin

DEFAULT_GROUP = "default"
"""Group label for values supplied without an explicit group."""

_ANNOTATED_MARKER_MIN_ARGS = 2


class Group(NamedTuple):
    """Bind a dependency or a provider output to a named group.

    Attach ``Group`` metadata to ``typing.Annotated``. On a parameter or
    attribute it selects the group a singular or listed value is read from; on
    a provider return annotation it selects the group the produced values are
    stored under. Unannotated values live in the ``"default"`` group.

    Examples:
        .. code-block:: python

            from typing import Annotated, TypeAlias


            class Handler: ...


            AdminHandler: TypeAlias = Annotated[Handler, Group("admin")]


            def admin_handler() -> AdminHandler:
                return Handler()

    """

    value: str


def normalize_group(group: object) -> str:
    """Return a group label with whitespace trimmed and blanks mapped to default.

    Args:
        group: Raw group label, usually a mapping key or ``Group.value``.

    """
    label = str(group).strip() if group is not None else ""
    return label or DEFAULT_GROUP


def group_of(annotation: Any) -> str | None:
    """Return the group bound by ``Annotated[..., Group(...)]`` metadata, if any.

    Args:
        annotation: Annotation value to inspect.

    """
    if get_origin(annotation) is not Annotated:
        return None
    annotation_args = get_args(annotation)
    if len(annotation_args) < _ANNOTATED_MARKER_MIN_ARGS:
        return None  # pragma: no cover - Annotated requires at least 2 args
    for metadata in annotation_args[1:]:
        if isinstance(metadata, Group):
            return normalize_group(metadata.value)
    return None


__all__ = ["DEFAULT_GROUP", "Group", "group_of", "normalize_group"]
