"""
Request models for recommendation search.

A filter entry is a tagged variant keyed by ``kind``; each variant carries
only the attributes meaningful to it, so a SET entry has no operator and a
TEXT entry cannot carry a range. Whether a variant is allowed on a given
field is decided by the compiler against the field catalog.

Wire shape (camelCase):
{
    "startRow": 0,
    "endRow": 100,
    "sortModel": [{"field": "DUE_DATE", "direction": "asc"}],
    "filterModel": {
        "RECOMMENDATION_TITLE": {"kind": "TEXT", "operator": "CONTAINS", "value": "fire"},
        "RECOMMENDATION_STATUS": {"kind": "SET", "values": ["OPEN"]},
        "DUE_DATE": {"kind": "DATE", "operator": "IN_RANGE", "range": ["2024-01-01", "2024-12-31"]}
    }
}
"""

from __future__ import annotations

from datetime import date, datetime
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from .catalog import COMPARISON_OPERATORS, TEXT_OPERATORS, FilterField, FilterKind, Operator

_ENTRY_CONFIG = ConfigDict(frozen=True, extra="forbid")


class TextFilter(BaseModel):
    """Free-text constraint, answered by the search-relevance stage."""

    model_config = _ENTRY_CONFIG

    kind: Literal["TEXT"] = "TEXT"
    operator: Operator = Operator.CONTAINS
    value: str = ""

    @field_validator("operator")
    @classmethod
    def _text_operator(cls, v: Operator) -> Operator:
        if v not in TEXT_OPERATORS:
            raise ValueError(f"operator {v.value} is not valid for TEXT filters")
        return v

    @field_validator("value", mode="before")
    @classmethod
    def _none_is_blank(cls, v: Any) -> Any:
        return "" if v is None else v

    @property
    def filter_kind(self) -> FilterKind:
        return FilterKind.TEXT


class _ComparisonFilter(BaseModel):
    model_config = _ENTRY_CONFIG

    operator: Operator = Operator.EQUALS

    @field_validator("operator")
    @classmethod
    def _comparison_operator(cls, v: Operator) -> Operator:
        if v not in COMPARISON_OPERATORS:
            raise ValueError(f"operator {v.value} is not valid for NUMBER/DATE filters")
        return v


class NumberFilter(_ComparisonFilter):
    """Numeric equality, bound or inclusive range."""

    kind: Literal["NUMBER"] = "NUMBER"
    value: float | None = None
    range: list[float] | None = None

    @property
    def filter_kind(self) -> FilterKind:
        return FilterKind.NUMBER


class DateFilter(_ComparisonFilter):
    """Date equality, bound or inclusive range."""

    kind: Literal["DATE"] = "DATE"
    value: datetime | date | None = None
    range: list[datetime | date] | None = None

    @property
    def filter_kind(self) -> FilterKind:
        return FilterKind.DATE


class SetFilter(BaseModel):
    """Set membership: the stored value must equal one of ``values``.

    An empty ``values`` list matches nothing.
    """

    model_config = _ENTRY_CONFIG

    kind: Literal["SET"] = "SET"
    values: list[str | int | float] = Field(default_factory=list)

    @property
    def filter_kind(self) -> FilterKind:
        return FilterKind.SET


FilterEntry = Annotated[
    Union[TextFilter, NumberFilter, DateFilter, SetFilter],
    Field(discriminator="kind"),
]


class SortItem(BaseModel):
    """One sort key."""

    model_config = ConfigDict(frozen=True)

    field: FilterField
    direction: Literal["asc", "desc"] = "asc"


class SearchRequest(BaseModel):
    """Filter, sort and page-window request for one search call."""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    start_row: int = Field(default=0, ge=0, alias="startRow")
    end_row: int = Field(default=100, alias="endRow")
    sort_model: list[SortItem] = Field(default_factory=list, alias="sortModel")
    filter_model: dict[FilterField, FilterEntry] = Field(
        default_factory=dict, alias="filterModel"
    )

    @model_validator(mode="after")
    def _check_window(self) -> "SearchRequest":
        if self.end_row <= self.start_row:
            raise ValueError(
                f"endRow ({self.end_row}) must be greater than startRow ({self.start_row})"
            )
        return self

    @property
    def page_size(self) -> int:
        return self.end_row - self.start_row
