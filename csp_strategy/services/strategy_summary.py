"""
Strategy Summary Service

Single-pass pipeline that turns a CSP event's shipment documents into one
immutable StrategySummary and writes it onto the event.

Pipeline:
    rows → column normalization → aggregation + missed savings (pure)
         → narrative → assemble → persist

Two entry points converge on the same path:
- generate_strategy_summary(): provided-data mode, rows already parsed by the caller
- refresh_strategy_summary(): refresh mode, rows re-fetched from the document store

Terminal outcomes:
- Success: the summary is persisted (replacing any prior one) and returned
- Failure: InputError or PersistenceError is raised and nothing is persisted

There is no rollback if persistence fails after the narrative succeeded; the
summary is cheap to regenerate.
"""

from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence
import logging

from csp_strategy.core.config import Settings, get_settings
from csp_strategy.core.database import execute_command, execute_query_one
from csp_strategy.core.exceptions import InputError, PersistenceError
from csp_strategy.models import NarrativeSource, StrategySummary
from csp_strategy.services.aggregation import (
    DEFAULT_TOP_CARRIER_LIMIT,
    DEFAULT_TOP_LANE_LIMIT,
    TransactionAggregates,
    aggregate_transactions,
)
from csp_strategy.services.carrier_directory import CarrierDirectory, fetch_carrier_directory
from csp_strategy.services.columns import normalize_opportunity_row, normalize_transaction_row
from csp_strategy.services.documents import load_event_rows
from csp_strategy.services.narrative import NarrativeGenerator, get_narrative_generator
from csp_strategy.services.opportunity import (
    DEFAULT_MISSED_SAVINGS_LIMIT,
    OpportunityAggregates,
    calculate_opportunities,
)
from csp_strategy.services.ownership import DEFAULT_OWNERSHIP_VOCABULARY, OwnershipVocabulary

logger = logging.getLogger(__name__)


# =============================================================================
# Assembly
# =============================================================================

def _share(part: float, total: float) -> float:
    if total <= 0:
        return 0.0
    return round(part / total * 100, 1)


def assemble_summary(
    txn: TransactionAggregates,
    opp: OpportunityAggregates,
    summary_text: str = "",
    narrative_source: NarrativeSource = NarrativeSource.TEMPLATE,
    generated_at: Optional[datetime] = None,
) -> StrategySummary:
    """
    Compose transaction and opportunity aggregates into a StrategySummary.

    Brokerage and customer-direct percentages are shares of total_spend.
    """
    return StrategySummary(
        generated_at=generated_at or datetime.now(timezone.utc),
        shipment_count=txn.shipment_count,
        lane_count=opp.lost_opportunity_count,
        shipment_lane_count=txn.lane_count,
        total_spend=txn.total_spend,
        brokerage_spend=txn.brokerage_spend,
        brokerage_shipments=txn.brokerage_shipments,
        brokerage_percentage=_share(txn.brokerage_spend, txn.total_spend),
        customer_direct_spend=txn.customer_direct_spend,
        customer_direct_shipments=txn.customer_direct_shipments,
        customer_direct_percentage=_share(txn.customer_direct_spend, txn.total_spend),
        date_range_start=txn.date_range_start,
        date_range_end=txn.date_range_end,
        top_carriers=list(txn.top_carriers),
        carrier_breakdown=list(txn.carrier_breakdown),
        top_lanes=list(txn.top_lanes),
        missed_savings_by_carrier=list(opp.missed_savings_by_carrier),
        lost_opportunity_count=opp.lost_opportunity_count,
        lost_opportunity_total=opp.lost_opportunity_total,
        summary_text=summary_text,
        narrative_source=narrative_source,
    )


async def build_strategy_summary(
    txn_rows: Iterable[Mapping[str, Any]],
    lo_rows: Iterable[Mapping[str, Any]],
    directory: CarrierDirectory,
    generator: NarrativeGenerator,
    instructions: Optional[str] = None,
    knowledge_snippets: Optional[Sequence[str]] = None,
    vocabulary: OwnershipVocabulary = DEFAULT_OWNERSHIP_VOCABULARY,
    top_carrier_limit: int = DEFAULT_TOP_CARRIER_LIMIT,
    top_lane_limit: int = DEFAULT_TOP_LANE_LIMIT,
    missed_savings_limit: int = DEFAULT_MISSED_SAVINGS_LIMIT,
) -> StrategySummary:
    """
    Run the aggregation core and narrative over raw rows. Performs no database IO.

    Args:
        txn_rows: Raw transaction-detail rows (header → value)
        lo_rows: Raw low-cost-opportunity rows (header → value)
        directory: Carrier directory for this invocation
        generator: Narrative implementation
        instructions: Optional system instructions for an AI narrative
        knowledge_snippets: Optional knowledge-base passages for an AI narrative

    Returns:
        The complete, frozen StrategySummary.

    Raises:
        InputError: Neither document produced a usable row.
    """
    transactions = [normalize_transaction_row(row) for row in txn_rows or []]
    opportunities = [normalize_opportunity_row(row) for row in lo_rows or []]

    txn = aggregate_transactions(
        transactions,
        directory,
        vocabulary=vocabulary,
        top_carrier_limit=top_carrier_limit,
        top_lane_limit=top_lane_limit,
    )
    opp = calculate_opportunities(opportunities, directory, limit=missed_savings_limit)

    if txn.shipment_count == 0 and opp.opportunity_row_count == 0:
        raise InputError(
            f"No usable rows: {len(transactions)} transaction rows and "
            f"{len(opportunities)} opportunity rows produced no valid data"
        )

    logger.info(
        f"Aggregated {txn.shipment_count} shipments across {len(txn.carrier_breakdown)} carriers, "
        f"{opp.lost_opportunity_count} lost opportunities"
    )

    draft = assemble_summary(txn, opp)
    narrative = await generator.generate(draft, instructions, knowledge_snippets)

    return draft.model_copy(update={
        'summary_text': narrative.text,
        'narrative_source': narrative.source,
    })


# =============================================================================
# Persistence
# =============================================================================

async def persist_strategy_summary(event_id: str, summary: StrategySummary) -> None:
    """
    Write a summary onto its CSP event, replacing any prior summary.

    Raises:
        PersistenceError: The UPDATE failed or matched no event.
    """
    try:
        status = await execute_command(
            """
            UPDATE csp_events
            SET strategy_summary = $1::jsonb,
                strategy_summary_updated_at = NOW()
            WHERE id = $2
            """,
            summary.model_dump_json(),
            event_id,
        )
    except Exception as e:
        logger.error(f"Failed to persist strategy summary for event {event_id}: {e}")
        raise PersistenceError(f"Failed to save strategy summary for event {event_id}: {e}") from e

    if status == 'UPDATE 0':
        logger.error(f"Strategy summary not persisted: CSP event {event_id} not found")
        raise PersistenceError(f"CSP event {event_id} not found")

    logger.info(f"Persisted strategy summary for event {event_id}")


async def load_persisted_summary(event_id: str) -> Optional[StrategySummary]:
    """Return the summary stored on a CSP event, or None if there is none."""
    row = await execute_query_one(
        "SELECT strategy_summary FROM csp_events WHERE id = $1",
        event_id,
    )
    if not row or not row['strategy_summary']:
        return None

    stored = row['strategy_summary']
    if isinstance(stored, (str, bytes)):
        return StrategySummary.model_validate_json(stored)
    return StrategySummary.model_validate(stored)


# =============================================================================
# Pipeline Entry Points
# =============================================================================

async def _run_pipeline(
    event_id: str,
    txn_rows: List[Dict[str, Any]],
    lo_rows: List[Dict[str, Any]],
    instructions: Optional[str],
    knowledge_snippets: Optional[Sequence[str]],
    settings: Settings,
) -> StrategySummary:
    directory = await fetch_carrier_directory()
    generator = get_narrative_generator(settings)

    summary = await build_strategy_summary(
        txn_rows,
        lo_rows,
        directory,
        generator,
        instructions=instructions,
        knowledge_snippets=knowledge_snippets,
        top_carrier_limit=settings.top_carrier_limit,
        top_lane_limit=settings.top_lane_limit,
        missed_savings_limit=settings.missed_savings_limit,
    )

    await persist_strategy_summary(event_id, summary)
    return summary


async def generate_strategy_summary(
    event_id: str,
    txn_rows: List[Dict[str, Any]],
    lo_rows: List[Dict[str, Any]],
    instructions: Optional[str] = None,
    knowledge_snippets: Optional[Sequence[str]] = None,
    settings: Optional[Settings] = None,
) -> StrategySummary:
    """
    Provided-data mode: summarize rows the caller already parsed.

    Raises:
        InputError: Neither row list produced a usable row.
        PersistenceError: The summary could not be saved.
    """
    settings = settings or get_settings()
    logger.info(
        f"Generating strategy summary for event {event_id}: "
        f"{len(txn_rows or [])} transaction rows, {len(lo_rows or [])} opportunity rows"
    )
    return await _run_pipeline(event_id, txn_rows, lo_rows, instructions, knowledge_snippets, settings)


async def refresh_strategy_summary(
    event_id: str,
    instructions: Optional[str] = None,
    knowledge_snippets: Optional[Sequence[str]] = None,
    settings: Optional[Settings] = None,
) -> StrategySummary:
    """
    Refresh mode: re-fetch the event's source documents, then summarize.

    Raises:
        DocumentNotFoundError: The event has no source documents.
        InputError: The documents produced no usable row.
        PersistenceError: The summary could not be saved.
    """
    settings = settings or get_settings()
    txn_rows, lo_rows = await load_event_rows(event_id, settings)
    logger.info(
        f"Refreshing strategy summary for event {event_id}: "
        f"{len(txn_rows)} transaction rows, {len(lo_rows)} opportunity rows"
    )
    return await _run_pipeline(event_id, txn_rows, lo_rows, instructions, knowledge_snippets, settings)


__all__ = [
    'assemble_summary',
    'build_strategy_summary',
    'persist_strategy_summary',
    'load_persisted_summary',
    'generate_strategy_summary',
    'refresh_strategy_summary',
]
