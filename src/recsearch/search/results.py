"""
Result assembly: raw record documents -> SearchResultPage.

``lastRow`` tells an infinite-scroll client where the data ends:

- short page (fewer rows than the window): ``startRow + len(rows)``
- full page ending exactly at the last matching row (no row past the window,
  or, when that was not checked, a count equal to the rows seen):
  ``startRow + len(rows)``
- full page with more data behind it: ``-1`` under the ``sentinel`` policy,
  ``startRow + len(rows)`` (rows seen so far) under ``running_total``
- full page with a count below the rows seen (search index still catching
  up): treated as more data behind it, never as end-of-data
"""

from __future__ import annotations

from datetime import date, datetime
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

UNKNOWN_LAST_ROW = -1

LastRowPolicy = Literal["sentinel", "running_total"]


class RecordRow(BaseModel):
    """Public row shape of a recommendation."""

    model_config = ConfigDict(populate_by_name=True)

    id: str
    recommendation_id: str | None = Field(default=None, alias="recommendationId")
    recommendation_title: str | None = Field(default=None, alias="recommendationTitle")
    recommendation_body: str | None = Field(default=None, alias="recommendationBody")
    recommendation_type: str | None = Field(default=None, alias="recommendationType")
    recommendation_category: str | None = Field(default=None, alias="recommendationCategory")
    recommendation_priority: str | None = Field(default=None, alias="recommendationPriority")
    recommendation_status: str | None = Field(default=None, alias="recommendationStatus")
    submission_base_nr: str | None = Field(default=None, alias="submissionBaseNr")
    submission_id: str | None = Field(default=None, alias="submissionId")
    object_id: str | None = Field(default=None, alias="objectId")
    object_name: str | None = Field(default=None, alias="objectName")
    rc_id: str | None = Field(default=None, alias="rcId")
    loss_estimate_before_value: float | None = Field(default=None, alias="lossEstimateBeforeValue")
    loss_estimate_after_value: float | None = Field(default=None, alias="lossEstimateAfterValue")
    currency: str | None = None
    due_date: datetime | date | None = Field(default=None, alias="dueDate")
    recommendation_completed_date: datetime | date | None = Field(
        default=None, alias="recommendationCompletedDate"
    )

    @classmethod
    def from_document(cls, document: dict[str, Any]) -> "RecordRow":
        """Build a row from a stored document (``_id`` becomes ``id``)."""
        data = {k: v for k, v in document.items() if k != "_id"}
        for key in ("lossEstimateBeforeValue", "lossEstimateAfterValue"):
            # Decimal128 from BSON
            if hasattr(data.get(key), "to_decimal"):
                data[key] = float(data[key].to_decimal())
        return cls.model_validate({**data, "id": str(document["_id"])})


class SearchResultPage(BaseModel):
    """One page of search results."""

    model_config = ConfigDict(populate_by_name=True)

    rows: list[RecordRow] = Field(default_factory=list)
    last_row: int = Field(default=UNKNOWN_LAST_ROW, alias="lastRow")


def compute_last_row(
    start_row: int,
    end_row: int,
    returned: int,
    total: int | None = None,
    policy: LastRowPolicy = "sentinel",
    has_more: bool | None = None,
) -> int:
    """
    Compute ``lastRow`` for a page.

    Args:
        start_row: Window start (inclusive).
        end_row: Window end (exclusive).
        returned: Number of rows the list operation returned.
        total: Matching count, if it was computed alongside the list.
        policy: What to report for a full page with more data behind it.
        has_more: Whether the list saw a row past ``end_row``; ``None`` when it
            did not look, in which case only an exactly matching ``total``
            ends the data on a full page.
    """
    seen = start_row + returned
    if returned < end_row - start_row:
        return seen
    if has_more is False:
        return seen
    if has_more is None and total is not None and seen == total:
        return seen
    return seen if policy == "running_total" else UNKNOWN_LAST_ROW


def assemble_page(
    documents: list[dict[str, Any]],
    start_row: int,
    end_row: int,
    total: int | None = None,
    policy: LastRowPolicy = "sentinel",
    has_more: bool | None = None,
) -> SearchResultPage:
    """Map documents to rows and package them with ``lastRow``."""
    rows = [RecordRow.from_document(d) for d in documents]
    return SearchResultPage(
        rows=rows,
        last_row=compute_last_row(start_row, end_row, len(rows), total, policy, has_more),
    )
