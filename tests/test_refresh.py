"""
Refresh orchestrator tests: state machine outcomes, invalidation ordering,
single-flight, deadlines and cooldown.
"""

import asyncio
import logging
from datetime import datetime, timezone

import pytest

from bcvrates.core.errors import (
    LivenessError,
    NotFoundError,
    RefreshTimeoutError,
    TotalExtractionFailure,
)
from bcvrates.core.models import ALL_KEY, ALL_STALE_KEY, Currency, currency_key
from bcvrates.core.queries import CurrencyQueries
from bcvrates.core.refresh import RefreshOrchestrator, RefreshState
from bcvrates.core.service import build_service

from conftest import FakeBCV, bcv_page, mock_bcv_client

ANCHORS = {"euro": ("EUR", "Euro"), "dolar": ("USD", "Dólar Americano")}


def _orchestrator(client, repository, cache, clock, min_interval=60.0):
    return RefreshOrchestrator(
        client, repository, cache,
        anchors=ANCHORS, fetch_timeout=5.0, min_interval=min_interval, clock=clock,
    )


class TestRefreshOutcomes:

    @pytest.mark.asyncio
    async def test_end_to_end_example(self, repository, cache, clock):
        client, _ = mock_bcv_client()
        orchestrator = _orchestrator(client, repository, cache, clock)

        result = await orchestrator.refresh()

        assert result.success is True
        assert result.updated_count == 2
        assert result.updated_ids == ["EUR", "USD"]
        assert repository.find_by_id("EUR").value == 144.3732
        assert repository.find_by_id("USD").value == 168.34059493
        assert orchestrator.state is RefreshState.DONE

        queries = CurrencyQueries(repository, cache)
        first = queries.get_one("EUR")
        second = queries.get_one("EUR")
        assert (first.from_cache, first.currency.value) == (False, 144.3732)
        assert (second.from_cache, second.currency.value) == (True, 144.3732)

    @pytest.mark.asyncio
    async def test_invalidates_entity_and_aggregate_keys_once(self, repository, cache, clock):
        orchestrator = _orchestrator(FakeBCV(page=bcv_page(euro="144,37320000")), repository, cache, clock)
        cache.set(currency_key("EUR"), b"old", 60)
        cache.set(ALL_KEY, b"old", 60)

        await orchestrator.refresh()

        assert cache.deleted.count(currency_key("EUR")) == 1
        assert cache.deleted.count(ALL_KEY) == 1
        assert cache.deleted.count(ALL_STALE_KEY) == 1
        assert cache.deleted.index(currency_key("EUR")) < cache.deleted.index(ALL_KEY)
        assert not cache.exists(currency_key("EUR"))
        assert not cache.exists(ALL_KEY)

    @pytest.mark.asyncio
    async def test_extracted_values_logged(self, repository, cache, clock, caplog):
        caplog.set_level(logging.DEBUG, logger="refresh")
        await _orchestrator(FakeBCV(), repository, cache, clock).refresh()
        assert "Extracted {'euro': 144.3732, 'dolar': 168.34059493}" in caplog.messages

    @pytest.mark.asyncio
    async def test_partial_extraction_is_success(self, repository, cache, clock):
        page = bcv_page(euro="144,37320000", dolar="sin dato")
        orchestrator = _orchestrator(FakeBCV(page=page), repository, cache, clock)

        result = await orchestrator.refresh()

        assert result.success is True
        assert result.updated_count == 1
        assert result.updated_ids == ["EUR"]
        assert "USD" not in result.updated_ids

    @pytest.mark.asyncio
    async def test_liveness_failure_touches_nothing(self, repository, cache, clock):
        previous = Currency("EUR", "Euro", 140.0, datetime(2026, 1, 1, tzinfo=timezone.utc))
        repository.save(previous)
        cache.set(currency_key("EUR"), b"cached", 60)
        source = FakeBCV(live=False)
        orchestrator = _orchestrator(source, repository, cache, clock)
        stats_before = cache.stats()

        result = await orchestrator.refresh()

        assert result.success is False
        assert isinstance(result.error, LivenessError)
        assert orchestrator.state is RefreshState.FAILED
        assert source.fetches == 0
        assert repository.find_all() == [previous]
        assert cache.deleted == []
        assert cache.stats() == stats_before

    @pytest.mark.asyncio
    async def test_liveness_failure_over_http(self, repository, cache, clock):
        client, seen = mock_bcv_client(head_status=503)
        result = await _orchestrator(client, repository, cache, clock).refresh()
        assert result.success is False
        assert [r.method for r in seen] == ["HEAD"]
        assert repository.count() == 0

    @pytest.mark.asyncio
    async def test_fetch_failure(self, repository, cache, clock):
        orchestrator = _orchestrator(FakeBCV(fetch_ok=False), repository, cache, clock)
        result = await orchestrator.refresh()
        assert result.success is False
        assert "Could not fetch" in result.message
        assert repository.count() == 0

    @pytest.mark.asyncio
    async def test_total_extraction_failure(self, repository, cache, clock):
        page = "<html><body><p>Sitio en mantenimiento</p></body></html>"
        orchestrator = _orchestrator(FakeBCV(page=page), repository, cache, clock)

        result = await orchestrator.refresh()

        assert result.success is False
        assert isinstance(result.error, TotalExtractionFailure)
        assert len(result.error.errors) == 2
        assert orchestrator.state is RefreshState.FAILED
        assert cache.deleted == []

    @pytest.mark.asyncio
    async def test_rejected_save_does_not_stop_siblings(self, repository, cache, clock):
        page = bcv_page(euro="0,00", dolar="168,34059493")
        orchestrator = _orchestrator(FakeBCV(page=page), repository, cache, clock)

        result = await orchestrator.refresh()

        assert result.success is True
        assert result.updated_ids == ["USD"]
        assert currency_key("EUR") not in cache.deleted
        with pytest.raises(NotFoundError):
            repository.find_by_id("EUR")

    @pytest.mark.asyncio
    async def test_zero_saves_is_nominal_success(self, repository, cache, clock):
        page = bcv_page(euro="0,00", dolar="0,00")
        orchestrator = _orchestrator(FakeBCV(page=page), repository, cache, clock)

        result = await orchestrator.refresh()

        assert result.success is True
        assert result.updated_count == 0
        assert result.error is None
        assert orchestrator.state is RefreshState.DONE


class TestRefreshConcurrency:

    @pytest.mark.asyncio
    async def test_concurrent_refreshes_share_one_attempt(self, repository, cache, clock):
        source = FakeBCV()
        source.gate = asyncio.Event()
        orchestrator = _orchestrator(source, repository, cache, clock)

        first = asyncio.create_task(orchestrator.refresh(force=True))
        second = asyncio.create_task(orchestrator.refresh(force=True))
        await asyncio.sleep(0)
        assert orchestrator.running
        source.gate.set()
        r1, r2 = await asyncio.gather(first, second)

        assert source.fetches == 1
        assert r1 is r2
        assert not orchestrator.running

    @pytest.mark.asyncio
    async def test_deadline_exceeded_returns_timeout(self, repository, cache, clock):
        source = FakeBCV()
        source.gate = asyncio.Event()
        orchestrator = _orchestrator(source, repository, cache, clock)

        result = await orchestrator.refresh(deadline=0.05)

        assert result.success is False
        assert isinstance(result.error, RefreshTimeoutError)
        assert orchestrator.running

        # the shared attempt carries on and can still be joined
        source.gate.set()
        joined = await orchestrator.refresh(force=True)
        assert joined.success is True
        assert source.fetches == 1
        assert repository.count() == 2

    @pytest.mark.asyncio
    async def test_cooldown_skips_unforced_refresh(self, repository, cache, clock):
        source = FakeBCV()
        orchestrator = _orchestrator(source, repository, cache, clock, min_interval=60)

        await orchestrator.refresh()
        clock.advance(30)
        skipped = await orchestrator.refresh()
        assert skipped.success is True
        assert skipped.skipped is True
        assert source.fetches == 1

        forced = await orchestrator.refresh(force=True)
        assert forced.updated_count == 2
        assert source.fetches == 2

        clock.advance(61)
        await orchestrator.refresh()
        assert source.fetches == 3

    @pytest.mark.asyncio
    async def test_failed_run_does_not_start_cooldown(self, repository, cache, clock):
        source = FakeBCV(live=False)
        orchestrator = _orchestrator(source, repository, cache, clock)
        await orchestrator.refresh()
        source.live = True
        result = await orchestrator.refresh()
        assert result.skipped is False
        assert result.updated_count == 2

    @pytest.mark.asyncio
    async def test_cancel_abandons_inflight_attempt(self, repository, cache, clock):
        source = FakeBCV()
        source.gate = asyncio.Event()
        orchestrator = _orchestrator(source, repository, cache, clock)

        caller = asyncio.create_task(orchestrator.refresh())
        await asyncio.sleep(0.01)
        await orchestrator.cancel()

        assert not orchestrator.running
        assert repository.count() == 0
        with pytest.raises(asyncio.CancelledError):
            await caller


class TestServiceDeadline:

    @pytest.mark.asyncio
    async def test_zero_deadline_is_not_replaced_by_default(self):
        source = FakeBCV()
        source.gate = asyncio.Event()
        service = build_service(client=source)

        result = await service.refresh(deadline=0)

        assert isinstance(result.error, RefreshTimeoutError)
        assert result.error.deadline == 0
        source.gate.set()
        await service.orchestrator.refresh(force=True)
        service.cache.close()
