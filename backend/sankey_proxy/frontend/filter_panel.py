"""Filter panel state and its Streamlit sidebar rendering."""

from __future__ import annotations

from collections.abc import Callable, Sequence
from typing import Any

import streamlit as st

from sankey_proxy.models.data_models import CATEGORY_FIELDS, CategoryRecord, FilterField, FilterSelection, FlowRecord

FIELD_LABELS: dict[FilterField, str] = {
    FilterField.CATEGORY_FIELD_1: "Category Field 1",
    FilterField.CATEGORY_FIELD_2: "Category Field 2",
    FilterField.CATEGORY_FIELD_3: "Category Field 3",
    FilterField.SOURCE: "Source",
    FilterField.TARGET: "Target",
}

ChangeListener = Callable[[FilterSelection], None]


def distinct_values(records: Sequence[CategoryRecord], field: FilterField) -> list[str]:
    """Non-empty values of ``field`` in first-seen order."""
    seen: dict[str, None] = {}
    for record in records:
        value = getattr(record, field.value)
        if value:
            seen.setdefault(value, None)
    return list(seen)


def node_role(label: str, records: Sequence[FlowRecord]) -> FilterField:
    """SOURCE when the label has outgoing flows in ``records``, else TARGET."""
    if any(r.source == label for r in records):
        return FilterField.SOURCE
    return FilterField.TARGET


class FilterPanel:
    def __init__(self, selection: FilterSelection | None = None):
        self._options: dict[FilterField, list[str]] = {f: [] for f in CATEGORY_FIELDS}
        self._selection = selection or FilterSelection()
        self._listeners: list[ChangeListener] = []

    def subscribe(self, listener: ChangeListener) -> None:
        self._listeners.append(listener)

    def _emit(self) -> None:
        for listener in self._listeners:
            listener(self.selection)

    @property
    def selection(self) -> FilterSelection:
        return self._selection.model_copy(deep=True)

    @property
    def loaded(self) -> bool:
        return any(self._options.values())

    def on_categories_loaded(self, records: Sequence[CategoryRecord]) -> None:
        for field in CATEGORY_FIELDS:
            self._options[field] = distinct_values(records, field)

    def options(self, field: FilterField) -> list[str]:
        return list(self._options.get(field, []))

    def select(self, field: FilterField, values: Sequence[str]) -> None:
        """Replace the accepted values for one field and emit the change."""
        data = self._selection.model_dump()
        data[field.value] = [v for v in values if v]
        self._selection = FilterSelection(**data)
        self._emit()

    def reset(self) -> None:
        self._selection = FilterSelection()
        self._emit()

    def apply_node_click(self, label: str, records: Sequence[FlowRecord]) -> FilterSelection:
        """Drill into a clicked node, merging into the existing selection."""
        self.select(node_role(label, records), [label])
        return self.selection


def render_filter_panel(panel: FilterPanel, container: Any = None) -> None:
    """Draw one multiselect per category field plus a reset button."""
    container = container or st.sidebar
    container.header("Filters")

    if panel.loaded:
        current = panel.selection
        for field in CATEGORY_FIELDS:
            options = panel.options(field)
            chosen = [v for v in getattr(current, field.value) if v in options]
            values = container.multiselect(
                f"{FIELD_LABELS[field]}:",
                options=options,
                default=chosen,
                placeholder="All",
            )
            if values != chosen:
                panel.select(field, values)

    # Drill-down filters set by node clicks
    current = panel.selection
    for field in (FilterField.SOURCE, FilterField.TARGET):
        values = getattr(current, field.value)
        if values:
            container.caption(f"{FIELD_LABELS[field]}: {', '.join(values)}")

    if container.button("Reset Filters", width="stretch"):
        panel.reset()
