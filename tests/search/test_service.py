"""Tests for RecommendationSearchService over the in-memory store."""

import asyncio
import gc
import logging
from unittest.mock import AsyncMock

import pytest

from recsearch.errors import InvalidFilter, StorageUnavailable, UnresolvedTenant
from recsearch.search.filters import SearchRequest
from recsearch.search.results import UNKNOWN_LAST_ROW
from recsearch.search.service import RecommendationSearchService
from recsearch.search.stores import InMemoryRecordStore

TENANT_A = "SUB123456"
TENANT_B = "SUB999999"

FIRE = {"RECOMMENDATION_TITLE": {"kind": "TEXT", "operator": "CONTAINS", "value": "fire"}}
OPEN = {"RECOMMENDATION_STATUS": {"kind": "SET", "values": ["OPEN"]}}


def request(filters=None, **window) -> SearchRequest:
    return SearchRequest.model_validate({"filterModel": filters or {}, **window})


class TestSearchScenarios:
    @pytest.mark.asyncio
    async def test_contains_is_case_insensitive(self, service) -> None:
        page = await service.search(TENANT_A, request(FIRE, startRow=0, endRow=100))

        assert len(page.rows) == 3
        assert all("fire" in r.recommendation_title.lower() for r in page.rows)
        assert page.last_row == 3
        assert await service.count(TENANT_A, request(FIRE)) == 3

    @pytest.mark.asyncio
    async def test_filters_are_anded(self, service) -> None:
        page = await service.search(TENANT_A, request({**FIRE, **OPEN}))

        titles = sorted(r.recommendation_title for r in page.rows)
        assert titles == ["Fire Alarm System Check", "Install Fire Safety Equipment"]
        assert all(r.recommendation_status == "OPEN" for r in page.rows)

    @pytest.mark.asyncio
    async def test_window_inside_data(self, service) -> None:
        page = await service.search(TENANT_A, request(OPEN, startRow=2, endRow=4))
        assert len(page.rows) == 2
        assert page.last_row == UNKNOWN_LAST_ROW

    @pytest.mark.asyncio
    async def test_window_inside_data_running_total(self, store) -> None:
        service = RecommendationSearchService(store, last_row_policy="running_total")
        page = await service.search(TENANT_A, request(OPEN, startRow=2, endRow=4))
        assert len(page.rows) == 2
        assert page.last_row == 4

    @pytest.mark.asyncio
    async def test_window_reaching_end(self, service) -> None:
        page = await service.search(TENANT_A, request(OPEN, startRow=4, endRow=100))
        assert len(page.rows) == 1
        assert page.last_row == 5

    @pytest.mark.asyncio
    async def test_full_page_at_exact_end(self, service) -> None:
        page = await service.search(TENANT_A, request(OPEN, startRow=3, endRow=5))
        assert len(page.rows) == 2
        assert page.last_row == 5

    @pytest.mark.asyncio
    async def test_window_past_end(self, service) -> None:
        page = await service.search(TENANT_A, request(OPEN, startRow=50, endRow=60))
        assert page.rows == []
        assert page.last_row == 50

    @pytest.mark.asyncio
    async def test_tenant_isolation(self, service) -> None:
        page = await service.search(TENANT_B, request(FIRE))
        assert [r.submission_base_nr for r in page.rows] == [TENANT_B]

        page = await service.search(TENANT_A, request())
        assert len(page.rows) == 8
        assert all(r.submission_base_nr == TENANT_A for r in page.rows)

    @pytest.mark.asyncio
    async def test_unknown_tenant_sees_nothing(self, service) -> None:
        page = await service.search("SUB000000", request())
        assert page.rows == []
        assert page.last_row == 0

    @pytest.mark.asyncio
    async def test_blank_text_filter_is_no_constraint(self, service) -> None:
        blank = {"RECOMMENDATION_TITLE": {"kind": "TEXT", "value": "  "}}
        with_blank = await service.search(TENANT_A, request(blank))
        without = await service.search(TENANT_A, request())
        assert with_blank == without

    @pytest.mark.asyncio
    async def test_empty_set_matches_nothing(self, service) -> None:
        page = await service.search(
            TENANT_A, request({"RECOMMENDATION_STATUS": {"kind": "SET", "values": []}})
        )
        assert page.rows == []

    @pytest.mark.asyncio
    async def test_exact_text(self, service) -> None:
        page = await service.search(
            TENANT_A,
            request({"RECOMMENDATION_TITLE": {"kind": "TEXT", "operator": "EQUALS", "value": "fire door inspection"}}),
        )
        assert [r.recommendation_id for r in page.rows] == ["REC_004"]

    @pytest.mark.asyncio
    async def test_number_and_date_filters(self, service) -> None:
        filters = {
            "LOSS_ESTIMATE_BEFORE_VALUE": {"kind": "NUMBER", "operator": "GREATER_THAN_OR_EQUAL", "value": 100000},
            "DUE_DATE": {"kind": "DATE", "operator": "IN_RANGE", "range": ["2025-01-01", "2025-12-31"]},
        }
        page = await service.search(TENANT_A, request(filters))
        assert sorted(r.recommendation_id for r in page.rows) == ["REC_001", "REC_002", "REC_005"]

    @pytest.mark.asyncio
    async def test_sort_with_tie_breaker(self, service) -> None:
        sort = SearchRequest.model_validate(
            {"sortModel": [{"field": "DUE_DATE", "direction": "desc"}], "filterModel": OPEN}
        )
        page = await service.search(TENANT_A, sort)
        assert [r.recommendation_id for r in page.rows] == [
            "REC_007", "REC_005", "REC_002", "REC_008", "REC_001"
        ]


class TestPagination:
    @pytest.mark.asyncio
    async def test_pages_concatenate_to_full_result(self, service) -> None:
        sort = [{"field": "LOSS_ESTIMATE_BEFORE_VALUE", "direction": "asc"}]
        full = await service.search(TENANT_A, SearchRequest.model_validate({"sortModel": sort}))

        rows = []
        start = 0
        while True:
            page = await service.search(
                TENANT_A,
                SearchRequest.model_validate({"sortModel": sort, "startRow": start, "endRow": start + 3}),
            )
            rows.extend(page.rows)
            if page.last_row != UNKNOWN_LAST_ROW:
                break
            start += 3

        assert [r.id for r in rows] == [r.id for r in full.rows]
        assert page.last_row == 8

    @pytest.mark.asyncio
    async def test_repeated_search_is_identical(self, service) -> None:
        body = request({**FIRE, **OPEN})
        assert await service.search(TENANT_A, body) == await service.search(TENANT_A, body)


class TestValidation:
    @pytest.mark.asyncio
    async def test_invalid_filter_before_storage(self) -> None:
        store = AsyncMock()
        service = RecommendationSearchService(store)
        with pytest.raises(InvalidFilter):
            await service.search(TENANT_A, request({"DUE_DATE": {"kind": "SET", "values": ["x"]}}))
        store.list.assert_not_called()
        store.count.assert_not_called()

    @pytest.mark.asyncio
    async def test_unresolved_tenant_before_storage(self) -> None:
        store = AsyncMock()
        service = RecommendationSearchService(store)
        with pytest.raises(UnresolvedTenant):
            await service.search(None, request(FIRE))
        store.list.assert_not_called()
        store.count.assert_not_called()


class TestEventualConsistency:
    @pytest.mark.asyncio
    async def test_fresh_record_visible_to_match_before_text(self, service, store, make_record) -> None:
        store.insert(make_record("REC_009", "Fire Hose Replacement"), indexed=False)

        assert await service.count(TENANT_A, request()) == 9
        assert await service.count(TENANT_A, request(FIRE)) == 3

        store.refresh_search_index()
        page = await service.search(TENANT_A, request(FIRE))
        assert len(page.rows) == 4


class LaggingCountStore(InMemoryRecordStore):
    """Count trails the list by ``lag`` records, as while the search index catches up."""

    def __init__(self, documents, lag: int):
        super().__init__(documents)
        self.lag = lag

    async def count(self, plan):
        return max(await super().count(plan) - self.lag, 0)


class TestCountBehindList:
    @pytest.mark.asyncio
    async def test_full_page_keeps_sentinel(self, records, caplog) -> None:
        service = RecommendationSearchService(LaggingCountStore(records, lag=2))

        with caplog.at_level(logging.WARNING, logger="recsearch.service"):
            page = await service.search(TENANT_A, request(startRow=0, endRow=6))

        assert len(page.rows) == 6
        assert page.last_row == UNKNOWN_LAST_ROW
        assert "below rows seen" not in caplog.text
        assert await service.count(TENANT_A, request()) == 6

    @pytest.mark.asyncio
    async def test_lag_is_logged_and_not_reported_as_end(self, records, caplog) -> None:
        service = RecommendationSearchService(LaggingCountStore(records, lag=4))

        with caplog.at_level(logging.WARNING, logger="recsearch.service"):
            page = await service.search(TENANT_A, request(startRow=0, endRow=6))

        assert len(page.rows) == 6
        assert page.last_row == UNKNOWN_LAST_ROW
        assert "Count (4) below rows seen (6)" in caplog.text

    @pytest.mark.asyncio
    async def test_lag_under_running_total(self, records) -> None:
        service = RecommendationSearchService(
            LaggingCountStore(records, lag=4), last_row_policy="running_total"
        )
        page = await service.search(TENANT_A, request(startRow=0, endRow=6))
        assert page.last_row == 6

    @pytest.mark.asyncio
    async def test_short_page_still_ends_data(self, records, caplog) -> None:
        service = RecommendationSearchService(LaggingCountStore(records, lag=2))

        with caplog.at_level(logging.WARNING, logger="recsearch.service"):
            page = await service.search(TENANT_A, request(startRow=0, endRow=100))

        assert len(page.rows) == 8
        assert page.last_row == 8
        assert "below rows seen" in caplog.text


class SlowCountStore(InMemoryRecordStore):
    """Count blocks until released; list fails straight away."""

    def __init__(self):
        super().__init__()
        self.count_started = asyncio.Event()
        self.count_cancelled = False

    async def list(self, plan, sort, start_row, end_row):
        await self.count_started.wait()
        raise StorageUnavailable("match stage failed", stage="match")

    async def count(self, plan):
        self.count_started.set()
        try:
            await asyncio.Event().wait()
        except asyncio.CancelledError:
            self.count_cancelled = True
            raise


class FailingStore(InMemoryRecordStore):
    """List fails once count is running; count fails again while being cancelled."""

    def __init__(self):
        super().__init__()
        self.count_started = asyncio.Event()

    async def list(self, plan, sort, start_row, end_row):
        await self.count_started.wait()
        raise StorageUnavailable("match stage failed", stage="match")

    async def count(self, plan):
        self.count_started.set()
        try:
            await asyncio.Event().wait()
        except asyncio.CancelledError:
            raise StorageUnavailable("count stage failed", stage="count")


class TestConcurrency:
    @pytest.mark.asyncio
    async def test_failure_cancels_sibling(self) -> None:
        store = SlowCountStore()
        service = RecommendationSearchService(store)

        with pytest.raises(StorageUnavailable):
            await service.search(TENANT_A, request())

        # sibling already finished when the failure surfaces
        assert store.count_cancelled

    @pytest.mark.asyncio
    async def test_double_failure_leaves_nothing_unretrieved(self) -> None:
        loop = asyncio.get_running_loop()
        reported = []
        previous = loop.get_exception_handler()
        loop.set_exception_handler(lambda _loop, context: reported.append(context))
        try:
            service = RecommendationSearchService(FailingStore())
            try:
                await service.search(TENANT_A, request())
            except StorageUnavailable as e:
                assert e.stage == "match"
            else:
                raise AssertionError("search did not fail")
            gc.collect()
            await asyncio.sleep(0)
        finally:
            loop.set_exception_handler(previous)

        assert not [c for c in reported if "never retrieved" in c.get("message", "")]

    @pytest.mark.asyncio
    async def test_list_and_count_overlap(self, records) -> None:
        store = InMemoryRecordStore(records, delay=0.2)
        service = RecommendationSearchService(store)

        loop = asyncio.get_running_loop()
        started = loop.time()
        await service.search(TENANT_A, request())
        assert loop.time() - started < 0.35

    @pytest.mark.asyncio
    async def test_concurrent_callers(self, service) -> None:
        pages = await asyncio.gather(
            service.search(TENANT_A, request(FIRE)),
            service.search(TENANT_B, request(FIRE)),
            service.search(TENANT_A, request(OPEN)),
        )
        assert [len(p.rows) for p in pages] == [3, 1, 5]


class TestGetRecord:
    @pytest.mark.asyncio
    async def test_own_record(self, service, store, make_record) -> None:
        record_id = store.insert(make_record("REC_010", "Roof Repair"))
        row = await service.get_record(TENANT_A, record_id)
        assert row.id == record_id
        assert row.recommendation_title == "Roof Repair"

    @pytest.mark.asyncio
    async def test_other_tenants_record_hidden(self, service, store, make_record) -> None:
        record_id = store.insert(make_record("REC_011", "Hidden", submission_base_nr=TENANT_B))
        assert await service.get_record(TENANT_A, record_id) is None

    @pytest.mark.asyncio
    async def test_requires_tenant(self, service) -> None:
        with pytest.raises(UnresolvedTenant):
            await service.get_record(None, "anything")

    @pytest.mark.asyncio
    async def test_close_without_client(self, service) -> None:
        await service.close()

    @pytest.mark.asyncio
    async def test_close_releases_client(self, store) -> None:
        client = AsyncMock()
        service = RecommendationSearchService(store, client=client)
        await service.close()
        await service.close()
        client.close.assert_awaited_once()
