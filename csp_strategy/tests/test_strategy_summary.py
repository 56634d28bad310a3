"""
Test Module for the Strategy Summary Pipeline.

Validates:
- Assembly of aggregates into a StrategySummary (spend shares, lane counts)
- InputError when neither document yields a usable row
- Persistence replaces the stored summary; failures raise PersistenceError
- Provided-data and refresh entry points
- Refresh-mode document lookup and download via a mocked httpx transport
"""

import json
from datetime import date
from typing import Any, Dict, List
from unittest.mock import AsyncMock, patch

import httpx
import pytest

from csp_strategy.core.exceptions import (
    DocumentNotFoundError,
    InputError,
    PersistenceError,
    StrategyEngineError,
)
from csp_strategy.models import DocumentType, NarrativeSource, StrategySummary
from csp_strategy.services.carrier_directory import CarrierDirectory
from csp_strategy.services.documents import build_document_url, fetch_event_documents, load_event_rows
from csp_strategy.services.narrative import NarrativeGenerator, NarrativeResult, TemplateNarrativeGenerator
from csp_strategy.services.strategy_summary import (
    build_strategy_summary,
    generate_strategy_summary,
    load_persisted_summary,
    persist_strategy_summary,
    refresh_strategy_summary,
)


class RecordingGenerator(NarrativeGenerator):
    """Narrative stub that records what it was asked to narrate."""

    def __init__(self):
        self.calls = []

    async def generate(self, summary, instructions=None, knowledge_snippets=None):
        self.calls.append((summary, instructions, knowledge_snippets))
        return NarrativeResult(text='narrated', source=NarrativeSource.AI)


def _route_fetch(carrier_rows: List[Dict[str, str]], document_rows: List[Dict[str, str]]):
    async def fetch(query: str, *args: Any):
        if 'FROM carriers' in query:
            return carrier_rows
        if 'FROM documents' in query:
            return document_rows
        return []
    return fetch


# =============================================================================
# Assembly
# =============================================================================


class TestAssembleSummary:

    def test_shares_of_total_spend(self, sample_summary: StrategySummary):
        # $300 brokerage and $1,300 customer direct out of $1,850
        assert sample_summary.brokerage_percentage == 16.2
        assert sample_summary.customer_direct_percentage == 70.3
        assert sample_summary.brokerage_shipments == 2
        assert sample_summary.customer_direct_shipments == 2

    def test_lane_counts(self, sample_summary: StrategySummary):
        assert sample_summary.lane_count == 3
        assert sample_summary.shipment_lane_count == 2
        assert sample_summary.lost_opportunity_count == 3

    def test_top_lists(self, sample_summary: StrategySummary):
        assert len(sample_summary.top_carriers) == 3
        assert len(sample_summary.carrier_breakdown) == 3
        assert sample_summary.missed_savings_by_carrier[0].carrier == 'Xylo Freight'
        assert sample_summary.date_range_start == date(2025, 1, 2)

    def test_summary_is_frozen(self, sample_summary: StrategySummary):
        with pytest.raises(Exception):
            sample_summary.total_spend = 0.0


# =============================================================================
# Pure Pipeline
# =============================================================================


class TestBuildStrategySummary:

    async def test_narrative_receives_complete_aggregates(self, directory, sample_txn_rows, sample_lo_rows):
        generator = RecordingGenerator()

        summary = await build_strategy_summary(
            sample_txn_rows, sample_lo_rows, directory, generator,
            instructions='Focus on lanes', knowledge_snippets=['kb'],
        )

        draft, instructions, snippets = generator.calls[0]
        assert draft.shipment_count == 5
        assert draft.summary_text == ''
        assert (instructions, snippets) == ('Focus on lanes', ['kb'])
        assert summary.summary_text == 'narrated'
        assert summary.narrative_source is NarrativeSource.AI
        assert summary.total_spend == pytest.approx(1850.0)

    @pytest.mark.scenario
    async def test_scenario_c_no_rows_raises_input_error(self):
        with pytest.raises(InputError):
            await build_strategy_summary([], [], CarrierDirectory(), TemplateNarrativeGenerator())

    async def test_only_invalid_rows_raises_input_error(self):
        txn_rows = [{'carrier': 'ABCD', 'cost': 'TBD'}, {'carrier': '', 'cost': '10'}]
        lo_rows = [{'load_id': 'L1', 'selected_cost': 'n/a', 'opportunity_cost': '5'}]

        with pytest.raises(InputError):
            await build_strategy_summary(txn_rows, lo_rows, CarrierDirectory(), TemplateNarrativeGenerator())

    async def test_opportunities_alone_are_enough(self):
        lo_rows = [{'load_id': 'L1', 'selected_carrier': 'XYZ', 'selected_cost': '500', 'opportunity_cost': '400'}]

        summary = await build_strategy_summary([], lo_rows, CarrierDirectory(), TemplateNarrativeGenerator())

        assert summary.shipment_count == 0
        assert summary.brokerage_percentage == 0.0
        assert summary.lost_opportunity_total == 100.0

    async def test_template_keeps_savings_without_load_ids(self):
        lo_rows = [{
            'selected_carrier': 'XYZ', 'selected_cost': '500',
            'opportunity_carrier': 'ABCD', 'opportunity_cost': '400',
        }]

        summary = await build_strategy_summary([], lo_rows, CarrierDirectory(), TemplateNarrativeGenerator())

        assert summary.lost_opportunity_total == 100.0
        assert summary.lost_opportunity_count == 0
        assert "• $100 in missed savings opportunities" in summary.summary_text
        assert "No lost opportunity data available" not in summary.summary_text

    async def test_limits_are_applied(self, directory, sample_txn_rows, sample_lo_rows):
        summary = await build_strategy_summary(
            sample_txn_rows, sample_lo_rows, directory, TemplateNarrativeGenerator(),
            top_carrier_limit=1, top_lane_limit=1, missed_savings_limit=1,
        )

        assert len(summary.top_carriers) == 1
        assert len(summary.top_lanes) == 1
        assert len(summary.missed_savings_by_carrier) == 1
        assert len(summary.carrier_breakdown) == 3


# =============================================================================
# Persistence
# =============================================================================


class TestPersistence:

    async def test_update_replaces_summary(self, mock_database, mock_conn, sample_summary):
        await persist_strategy_summary('evt-1', sample_summary)

        query, payload, event_id = mock_conn.execute.call_args[0]
        assert 'UPDATE csp_events' in query
        assert 'strategy_summary = $1::jsonb' in query
        assert event_id == 'evt-1'
        stored = json.loads(payload)
        assert stored['shipment_count'] == 5
        assert stored['carrier_breakdown'][0]['carrier'] == 'Acme Trucking'

    async def test_missing_event_raises(self, mock_database, mock_conn, sample_summary):
        mock_conn.execute.return_value = 'UPDATE 0'

        with pytest.raises(PersistenceError, match='not found'):
            await persist_strategy_summary('missing', sample_summary)

    async def test_database_error_raises(self, mock_database, mock_conn, sample_summary):
        mock_conn.execute.side_effect = ConnectionResetError('connection lost')

        with pytest.raises(PersistenceError) as exc_info:
            await persist_strategy_summary('evt-1', sample_summary)

        assert isinstance(exc_info.value.__cause__, ConnectionResetError)

    async def test_load_round_trips_json(self, mock_database, mock_conn, sample_summary):
        mock_conn.fetchrow.return_value = {'strategy_summary': sample_summary.model_dump_json()}

        loaded = await load_persisted_summary('evt-1')

        assert loaded == sample_summary

    async def test_load_accepts_decoded_json(self, mock_database, mock_conn, sample_summary):
        mock_conn.fetchrow.return_value = {'strategy_summary': sample_summary.model_dump(mode='json')}

        loaded = await load_persisted_summary('evt-1')

        assert loaded.total_spend == sample_summary.total_spend

    async def test_load_without_summary(self, mock_database, mock_conn):
        mock_conn.fetchrow.return_value = {'strategy_summary': None}

        assert await load_persisted_summary('evt-1') is None


# =============================================================================
# Entry Points
# =============================================================================


class TestGenerateStrategySummary:
    """Provided-data mode."""

    async def test_persists_and_returns_summary(
        self, mock_database, mock_conn, mock_settings, carrier_rows, sample_txn_rows, sample_lo_rows,
    ):
        mock_conn.fetch.side_effect = _route_fetch(carrier_rows, [])

        summary = await generate_strategy_summary(
            'evt-1', sample_txn_rows, sample_lo_rows, settings=mock_settings,
        )

        assert summary.carrier_breakdown[0].carrier == 'Acme Trucking'
        assert summary.narrative_source is NarrativeSource.TEMPLATE
        assert summary.summary_text.startswith('**Shipment Analysis**')
        mock_conn.execute.assert_awaited_once()

    @pytest.mark.scenario
    async def test_input_error_persists_nothing(self, mock_database, mock_conn, mock_settings, carrier_rows):
        mock_conn.fetch.side_effect = _route_fetch(carrier_rows, [])

        with pytest.raises(InputError):
            await generate_strategy_summary('evt-1', [], [], settings=mock_settings)

        mock_conn.execute.assert_not_awaited()

    async def test_persistence_failure_propagates(
        self, mock_database, mock_conn, mock_settings, carrier_rows, sample_txn_rows,
    ):
        mock_conn.fetch.side_effect = _route_fetch(carrier_rows, [])
        mock_conn.execute.return_value = 'UPDATE 0'

        with pytest.raises(PersistenceError):
            await generate_strategy_summary('evt-1', sample_txn_rows, [], settings=mock_settings)


class TestRefreshStrategySummary:
    """Refresh mode."""

    async def test_uses_document_rows(
        self, mock_database, mock_conn, mock_settings, carrier_rows, sample_txn_rows, sample_lo_rows,
    ):
        mock_conn.fetch.side_effect = _route_fetch(carrier_rows, [])
        load_rows = AsyncMock(return_value=(sample_txn_rows, sample_lo_rows))

        with patch('csp_strategy.services.strategy_summary.load_event_rows', new=load_rows):
            summary = await refresh_strategy_summary('evt-1', settings=mock_settings)

        load_rows.assert_awaited_once_with('evt-1', mock_settings)
        assert summary.shipment_count == 5
        assert summary.lost_opportunity_total == pytest.approx(450.0)
        mock_conn.execute.assert_awaited_once()

    async def test_missing_documents_raise(self, mock_database, mock_conn, mock_settings):
        mock_conn.fetch.side_effect = _route_fetch([], [])

        with pytest.raises(DocumentNotFoundError):
            await refresh_strategy_summary('evt-1', settings=mock_settings)

        mock_conn.execute.assert_not_awaited()


# =============================================================================
# Documents
# =============================================================================


class TestDocuments:
    """Refresh-mode document lookup and download."""

    def test_document_url(self):
        assert build_document_url('https://s.test/docs/', '/evt-1/txn.csv') == 'https://s.test/docs/evt-1/txn.csv'

    async def test_fetch_event_documents(self, mock_database, mock_conn):
        mock_conn.fetch.return_value = [
            {'document_type': 'transaction_detail', 'file_path': 'evt-1/txn.csv'},
            {'document_type': 'low_cost_opportunity', 'file_path': 'evt-1/lo.csv'},
        ]

        documents = await fetch_event_documents('evt-1')

        assert documents == {
            DocumentType.TRANSACTION_DETAIL: 'evt-1/txn.csv',
            DocumentType.LOW_COST_OPPORTUNITY: 'evt-1/lo.csv',
        }
        query, event_id, doc_types = mock_conn.fetch.call_args[0]
        assert 'DISTINCT ON (document_type)' in query
        assert event_id == 'evt-1'
        assert set(doc_types) == {'transaction_detail', 'low_cost_opportunity'}

    async def test_load_event_rows_downloads_and_parses(
        self, mock_database, mock_conn, mock_settings, sample_txn_csv, sample_lo_csv,
    ):
        mock_conn.fetch.return_value = [
            {'document_type': 'transaction_detail', 'file_path': 'evt-1/txn.csv'},
            {'document_type': 'low_cost_opportunity', 'file_path': 'evt-1/lo.csv'},
        ]
        seen_auth = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen_auth.append(request.headers.get('Authorization'))
            if request.url.path.endswith('txn.csv'):
                return httpx.Response(200, text=sample_txn_csv)
            return httpx.Response(200, text=sample_lo_csv)

        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            txn_rows, lo_rows = await load_event_rows('evt-1', mock_settings, http_client=client)

        assert len(txn_rows) == 3
        assert len(lo_rows) == 2
        assert seen_auth == ['Bearer test-storage-key', 'Bearer test-storage-key']

    async def test_failed_download_yields_no_rows(self, mock_database, mock_conn, mock_settings, sample_lo_csv):
        mock_conn.fetch.return_value = [
            {'document_type': 'transaction_detail', 'file_path': 'evt-1/txn.csv'},
            {'document_type': 'low_cost_opportunity', 'file_path': 'evt-1/lo.csv'},
        ]

        def handler(request: httpx.Request) -> httpx.Response:
            if request.url.path.endswith('txn.csv'):
                return httpx.Response(404, text='not found')
            return httpx.Response(200, text=sample_lo_csv)

        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            txn_rows, lo_rows = await load_event_rows('evt-1', mock_settings, http_client=client)

        assert txn_rows == []
        assert len(lo_rows) == 2

    async def test_only_one_document_type(self, mock_database, mock_conn, mock_settings, sample_lo_csv):
        mock_conn.fetch.return_value = [
            {'document_type': 'low_cost_opportunity', 'file_path': 'evt-1/lo.csv'},
        ]
        handler = lambda request: httpx.Response(200, text=sample_lo_csv)

        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            txn_rows, lo_rows = await load_event_rows('evt-1', mock_settings, http_client=client)

        assert txn_rows == []
        assert len(lo_rows) == 2

    async def test_no_documents_raise(self, mock_database, mock_conn, mock_settings):
        mock_conn.fetch.return_value = []

        with pytest.raises(DocumentNotFoundError):
            await load_event_rows('evt-1', mock_settings)

    async def test_unconfigured_storage_raises(self, mock_database, mock_conn, mock_settings):
        mock_conn.fetch.return_value = [{'document_type': 'transaction_detail', 'file_path': 'evt-1/txn.csv'}]
        mock_settings.storage_base_url = None

        with pytest.raises(StrategyEngineError, match='STORAGE_BASE_URL'):
            await load_event_rows('evt-1', mock_settings)
