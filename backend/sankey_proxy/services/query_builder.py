"""Translate a filter selection into a parameterized SQL predicate.

Field names are interpolated into the SQL text as raw identifiers, so they
are only ever taken from ``FilterField``. Values are always bound parameters
(``?`` placeholders, Snowflake ``qmark`` paramstyle).
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence

from sankey_proxy.models.data_models import FilterField, FilterSelection

ALLOWED_FIELDS: frozenset[str] = frozenset(f.value for f in FilterField)


class InvalidFilterFieldError(ValueError):
    """Raised when a filter names a column outside the allow-list."""

    def __init__(self, field: str):
        super().__init__(f"Unknown filter field: {field!r}")
        self.field = field


def _normalize_field(name: str | FilterField) -> str:
    if isinstance(name, FilterField):
        return name.value
    if name not in ALLOWED_FIELDS:
        raise InvalidFilterFieldError(name)
    return name


def build_predicate(
    selection: FilterSelection | Mapping[str | FilterField, Sequence[str] | None] | None,
) -> tuple[str, list[str]]:
    """Return ``(predicate_text, bound_values)`` for the given selection.

    One ``FIELD IN (?, ...)`` clause is emitted per restricted field, in
    encounter order, joined with AND. An unrestricted selection gives
    ``("", [])``.
    """
    if selection is None:
        return "", []
    items = selection.active() if isinstance(selection, FilterSelection) else selection

    clauses: list[str] = []
    binds: list[str] = []
    for name, values in items.items():
        # Every key is checked, including ones with no values
        field = _normalize_field(name)
        if not values:
            continue
        if isinstance(values, str):
            values = [values]
        placeholders = ", ".join("?" for _ in values)
        clauses.append(f"{field} IN ({placeholders})")
        binds.extend(str(v) for v in values)

    return " AND ".join(clauses), binds


def where_clause(predicate: str) -> str:
    """Prefix a non-empty predicate with WHERE."""
    return f"WHERE {predicate}" if predicate else ""
