"""
Field catalog for recommendation search.

Closed, process-wide table of the attributes a caller may filter or sort on.
Each entry names the storage path of the attribute, the filter kinds it
accepts and, per kind, the operators that kind may use on it.

The catalog is built once at import time and never mutated.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from types import MappingProxyType
from typing import Mapping


class FilterKind(str, Enum):
    """Declared data-type category of a filter entry."""

    TEXT = "TEXT"
    NUMBER = "NUMBER"
    DATE = "DATE"
    SET = "SET"


class Operator(str, Enum):
    """Comparison requested by a filter entry."""

    EQUALS = "EQUALS"
    CONTAINS = "CONTAINS"
    LESS_THAN = "LESS_THAN"
    LESS_THAN_OR_EQUAL = "LESS_THAN_OR_EQUAL"
    GREATER_THAN = "GREATER_THAN"
    GREATER_THAN_OR_EQUAL = "GREATER_THAN_OR_EQUAL"
    IN_RANGE = "IN_RANGE"


class FilterField(str, Enum):
    """Searchable / filterable / sortable record attributes."""

    RECOMMENDATION_TITLE = "RECOMMENDATION_TITLE"
    OBJECT_ID = "OBJECT_ID"
    OBJECT_NAME = "OBJECT_NAME"
    RECOMMENDATION_STATUS = "RECOMMENDATION_STATUS"
    RECOMMENDATION_PRIORITY = "RECOMMENDATION_PRIORITY"
    RECOMMENDATION_CATEGORY = "RECOMMENDATION_CATEGORY"
    RECOMMENDATION_TYPE = "RECOMMENDATION_TYPE"
    DUE_DATE = "DUE_DATE"
    RECOMMENDATION_COMPLETED_DATE = "RECOMMENDATION_COMPLETED_DATE"
    LOSS_ESTIMATE_BEFORE_VALUE = "LOSS_ESTIMATE_BEFORE_VALUE"
    LOSS_ESTIMATE_AFTER_VALUE = "LOSS_ESTIMATE_AFTER_VALUE"


TEXT_OPERATORS: frozenset[Operator] = frozenset({Operator.EQUALS, Operator.CONTAINS})

COMPARISON_OPERATORS: frozenset[Operator] = frozenset(
    {
        Operator.EQUALS,
        Operator.LESS_THAN,
        Operator.LESS_THAN_OR_EQUAL,
        Operator.GREATER_THAN,
        Operator.GREATER_THAN_OR_EQUAL,
        Operator.IN_RANGE,
    }
)


@dataclass(frozen=True)
class FieldSpec:
    """Catalog entry for one FilterField.

    Attributes:
        path: Document path of the attribute in the record collection.
        operators: Allowed operators per allowed kind. SET maps to an empty
            set because set membership carries no operator.
    """

    path: str
    operators: Mapping[FilterKind, frozenset[Operator]]

    @property
    def kinds(self) -> frozenset[FilterKind]:
        return frozenset(self.operators)


def _text(path: str) -> FieldSpec:
    return FieldSpec(path, MappingProxyType({FilterKind.TEXT: TEXT_OPERATORS}))


def _set(path: str) -> FieldSpec:
    return FieldSpec(path, MappingProxyType({FilterKind.SET: frozenset()}))


def _date(path: str) -> FieldSpec:
    return FieldSpec(path, MappingProxyType({FilterKind.DATE: COMPARISON_OPERATORS}))


def _number(path: str) -> FieldSpec:
    return FieldSpec(path, MappingProxyType({FilterKind.NUMBER: COMPARISON_OPERATORS}))


CATALOG: Mapping[FilterField, FieldSpec] = MappingProxyType(
    {
        FilterField.RECOMMENDATION_TITLE: _text("recommendationTitle"),
        FilterField.OBJECT_ID: _text("objectId"),
        FilterField.OBJECT_NAME: _text("objectName"),
        FilterField.RECOMMENDATION_STATUS: _set("recommendationStatus"),
        FilterField.RECOMMENDATION_PRIORITY: _set("recommendationPriority"),
        FilterField.RECOMMENDATION_CATEGORY: _set("recommendationCategory"),
        FilterField.RECOMMENDATION_TYPE: _set("recommendationType"),
        FilterField.DUE_DATE: _date("dueDate"),
        FilterField.RECOMMENDATION_COMPLETED_DATE: _date("recommendationCompletedDate"),
        FilterField.LOSS_ESTIMATE_BEFORE_VALUE: _number("lossEstimateBeforeValue"),
        FilterField.LOSS_ESTIMATE_AFTER_VALUE: _number("lossEstimateAfterValue"),
    }
)


def allowed_kinds(field: FilterField) -> frozenset[FilterKind]:
    """Filter kinds accepted by ``field``."""
    return CATALOG[field].kinds


def allowed_operators(field: FilterField, kind: FilterKind) -> frozenset[Operator]:
    """Operators ``kind`` may use on ``field``; empty if the kind is not allowed."""
    return CATALOG[field].operators.get(kind, frozenset())


def storage_path(field: FilterField) -> str:
    """Document path backing ``field``."""
    return CATALOG[field].path


def fields_of_kind(kind: FilterKind) -> list[FilterField]:
    """All catalog fields accepting ``kind``, in declaration order."""
    return [f for f, spec in CATALOG.items() if kind in spec.operators]
