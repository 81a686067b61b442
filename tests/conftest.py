"""
Shared fixtures: a small recommendation dataset served from memory.

Tenant SUB123456 owns eight recommendations, three of which mention "Fire"
in the title; tenant SUB999999 owns one.
"""

from datetime import datetime

import pytest

from recsearch.search.service import RecommendationSearchService
from recsearch.search.stores import InMemoryRecordStore

TENANT_A = "SUB123456"
TENANT_B = "SUB999999"


def make_recommendation(
    rec_id: str,
    title: str,
    submission_base_nr: str = TENANT_A,
    status: str = "OPEN",
    priority: str = "HIGH_PRIORITY",
    due_date: datetime = datetime(2025, 6, 1),
    loss_before: float = 100000.0,
) -> dict:
    return {
        "recommendationId": rec_id,
        "recommendationTitle": title,
        "recommendationBody": f"Detailed description for {title}",
        "recommendationType": "PHYSICAL",
        "recommendationCategory": "AUTOMATIC_SPRINKLERS",
        "recommendationPriority": priority,
        "recommendationStatus": status,
        "submissionBaseNr": submission_base_nr,
        "submissionId": f"{submission_base_nr}.1.0",
        "objectId": f"OBJ_{rec_id}",
        "objectName": f"Test Object {rec_id}",
        "rcId": f"RC_{rec_id}",
        "lossEstimateBeforeValue": loss_before,
        "lossEstimateAfterValue": 25000.0,
        "currency": "EUR",
        "dueDate": due_date,
    }


@pytest.fixture
def records() -> list[dict]:
    """Eight tenant-A recommendations followed by one tenant-B recommendation."""
    return [
        make_recommendation("REC_001", "Install Fire Safety Equipment", due_date=datetime(2025, 3, 1)),
        make_recommendation(
            "REC_002", "Upgrade Sprinkler System",
            priority="MEDIUM_PRIORITY", due_date=datetime(2025, 6, 15), loss_before=250000.0,
        ),
        make_recommendation(
            "REC_003", "Emergency Exit Maintenance",
            status="CLOSED", priority="LOW_PRIORITY", due_date=datetime(2025, 1, 10), loss_before=50000.0,
        ),
        make_recommendation(
            "REC_004", "Fire Door Inspection",
            status="CLOSED", due_date=datetime(2025, 9, 30), loss_before=75000.0,
        ),
        make_recommendation(
            "REC_005", "Automatic Sprinkler Installation",
            due_date=datetime(2025, 12, 1), loss_before=500000.0,
        ),
        make_recommendation(
            "REC_006", "Security Camera Upgrade",
            status="IN_PROGRESS", priority="LOW_PRIORITY", due_date=datetime(2025, 4, 20), loss_before=20000.0,
        ),
        make_recommendation(
            "REC_007", "Building Structural Assessment",
            priority="MEDIUM_PRIORITY", due_date=datetime(2026, 2, 28), loss_before=1000000.0,
        ),
        make_recommendation(
            "REC_008", "Fire Alarm System Check",
            due_date=datetime(2025, 6, 15), loss_before=30000.0,
        ),
        make_recommendation(
            "REC_OTHER_001", "Fire Safety System - Other Submission", submission_base_nr=TENANT_B,
        ),
    ]


@pytest.fixture
def store(records) -> InMemoryRecordStore:
    return InMemoryRecordStore(records)


@pytest.fixture
def service(store) -> RecommendationSearchService:
    return RecommendationSearchService(store)


@pytest.fixture
def make_record():
    """Factory for extra recommendation documents."""
    return make_recommendation
