"""Pydantic models for filter selections and warehouse rows."""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class FilterField(str, Enum):
    """Columns that may appear as identifiers in a generated predicate."""

    CATEGORY_FIELD_1 = "CATEGORY_FIELD_1"
    CATEGORY_FIELD_2 = "CATEGORY_FIELD_2"
    CATEGORY_FIELD_3 = "CATEGORY_FIELD_3"
    SOURCE = "SOURCE"
    TARGET = "TARGET"


CATEGORY_FIELDS: tuple[FilterField, ...] = (
    FilterField.CATEGORY_FIELD_1,
    FilterField.CATEGORY_FIELD_2,
    FilterField.CATEGORY_FIELD_3,
)


class FilterSelection(BaseModel):
    """Accepted values per filter field; an empty list means unrestricted."""

    model_config = ConfigDict(extra="forbid")

    CATEGORY_FIELD_1: list[str] = []
    CATEGORY_FIELD_2: list[str] = []
    CATEGORY_FIELD_3: list[str] = []
    SOURCE: list[str] = []
    TARGET: list[str] = []

    def active(self) -> dict[str, list[str]]:
        """Only the restricted fields, in declaration order."""
        return {name: values for name, values in self.model_dump().items() if values}

    def is_empty(self) -> bool:
        return not self.active()


class SankeyRequest(BaseModel):
    filters: FilterSelection = FilterSelection()


class CategoryRecord(BaseModel):
    CATEGORY_FIELD_1: str | None = None
    CATEGORY_FIELD_2: str | None = None
    CATEGORY_FIELD_3: str | None = None


class FlowRecord(BaseModel):
    """One weighted edge of the flow diagram, keyed by warehouse column names on the wire."""

    model_config = ConfigDict(populate_by_name=True)

    source: str = Field(alias="SOURCE")
    target: str = Field(alias="TARGET")
    value: float = Field(alias="VALUE", ge=0)
    source_attribute: str | None = Field(default=None, alias="SOURCE_ATTRIBUTE")
    target_attribute: str | None = Field(default=None, alias="TARGET_ATTRIBUTE")
    split_category: str | None = Field(default=None, alias="VALUE_SPLIT_CATEGORY")


class HealthResponse(BaseModel):
    status: str
    timestamp: str
