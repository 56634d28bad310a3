"""
FastAPI router module for CSP event strategy summaries.

Key Endpoints:
- POST /csp-events/{event_id}/strategy-summary - Provided-data mode: summarize parsed rows
- POST /csp-events/{event_id}/strategy-summary/refresh - Refresh mode: re-fetch source documents
- POST /csp-events/{event_id}/strategy-chat - Ask a question about the persisted summary
- GET /csp-events/{event_id}/projections - Monthly/annual volume and spend projections

Error Mapping:
- InputError (no usable rows) -> 400
- DocumentNotFoundError (no source documents) -> 404
- PersistenceError (summary not saved) -> 500
- Anything unexpected -> 500

Response shape for summary endpoints: { success: true, summary: {...} }

Dependencies:
- csp_strategy/core/dependencies.py: SettingsDep
- csp_strategy/services/strategy_summary.py: pipeline entry points
- csp_strategy/services/strategy_chat.py: answer_strategy_question
- csp_strategy/services/projections.py: calculate_volume_projections
"""

import logging
from typing import Optional

from fastapi import APIRouter, HTTPException, Query

from csp_strategy.core.dependencies import SettingsDep
from csp_strategy.core.exceptions import (
    DocumentNotFoundError,
    InputError,
    PersistenceError,
    StrategyEngineError,
)
from csp_strategy.models import (
    GenerateSummaryRequest,
    RefreshSummaryRequest,
    StrategyChatRequest,
    StrategyChatResponse,
    StrategySummaryResponse,
    VolumeProjection,
)
from csp_strategy.services.projections import calculate_volume_projections
from csp_strategy.services.strategy_chat import NO_SUMMARY_RESPONSE, answer_strategy_question
from csp_strategy.services.strategy_summary import (
    generate_strategy_summary,
    load_persisted_summary,
    refresh_strategy_summary,
)


# =============================================================================
# Module Configuration
# =============================================================================

logger = logging.getLogger(__name__)

router = APIRouter()


def _raise_for_engine_error(event_id: str, error: StrategyEngineError) -> None:
    """Translate a pipeline error into the matching HTTPException."""
    if isinstance(error, DocumentNotFoundError):
        logger.warning(f"Strategy summary for event {event_id}: {error}")
        raise HTTPException(status_code=404, detail=str(error))
    if isinstance(error, InputError):
        logger.warning(f"Strategy summary for event {event_id} rejected: {error}")
        raise HTTPException(status_code=400, detail=str(error))
    if isinstance(error, PersistenceError):
        logger.error(f"Strategy summary for event {event_id} not saved: {error}")
        raise HTTPException(status_code=500, detail="Failed to save strategy summary")
    logger.error(f"Strategy summary for event {event_id} failed: {error}")
    raise HTTPException(status_code=500, detail=str(error))


# =============================================================================
# POST /csp-events/{event_id}/strategy-summary - Provided-Data Mode
# =============================================================================


@router.post("/{event_id}/strategy-summary", response_model=StrategySummaryResponse)
async def create_strategy_summary(
    event_id: str,
    request: GenerateSummaryRequest,
    settings: SettingsDep,
) -> StrategySummaryResponse:
    """
    Build and persist a strategy summary from already-parsed rows.

    Example Request:
        {
            "txn_data": [{"carrier": "ABCD", "cost": "100", "origin_city": "Dallas", "dest_city": "Atlanta"}],
            "lo_data": [{"load_id": "L1", "selected_carrier": "XYZ", "selected_cost": "500",
                         "opportunity_carrier": "ABCD", "opportunity_cost": "400"}]
        }
    """
    try:
        summary = await generate_strategy_summary(
            event_id,
            request.txn_data,
            request.lo_data,
            instructions=request.instructions,
            knowledge_snippets=request.knowledge_snippets,
            settings=settings,
        )
    except StrategyEngineError as e:
        _raise_for_engine_error(event_id, e)
    except Exception as e:
        logger.exception(f"Error generating strategy summary for event {event_id}: {e}")
        raise HTTPException(status_code=500, detail="Failed to generate strategy summary")

    return StrategySummaryResponse(success=True, summary=summary)


# =============================================================================
# POST /csp-events/{event_id}/strategy-summary/refresh - Refresh Mode
# =============================================================================


@router.post("/{event_id}/strategy-summary/refresh", response_model=StrategySummaryResponse)
async def refresh_summary(
    event_id: str,
    settings: SettingsDep,
    request: Optional[RefreshSummaryRequest] = None,
) -> StrategySummaryResponse:
    """Re-fetch the event's source documents and rebuild its strategy summary."""
    request = request or RefreshSummaryRequest()
    try:
        summary = await refresh_strategy_summary(
            event_id,
            instructions=request.instructions,
            knowledge_snippets=request.knowledge_snippets,
            settings=settings,
        )
    except StrategyEngineError as e:
        _raise_for_engine_error(event_id, e)
    except Exception as e:
        logger.exception(f"Error refreshing strategy summary for event {event_id}: {e}")
        raise HTTPException(status_code=500, detail="Failed to refresh strategy summary")

    return StrategySummaryResponse(success=True, summary=summary)


# =============================================================================
# POST /csp-events/{event_id}/strategy-chat - Strategy Chat
# =============================================================================


@router.post("/{event_id}/strategy-chat", response_model=StrategyChatResponse)
async def strategy_chat(
    event_id: str,
    request: StrategyChatRequest,
    settings: SettingsDep,
) -> StrategyChatResponse:
    """
    Answer a question about the event's persisted strategy summary.

    Events without a summary get a friendly prompt to upload data, not an error.
    """
    try:
        summary = await load_persisted_summary(event_id)
        if summary is None:
            return StrategyChatResponse(response=NO_SUMMARY_RESPONSE)

        answer = await answer_strategy_question(
            summary,
            request.message,
            history=request.conversation_history,
            instructions=request.instructions,
            knowledge_snippets=request.knowledge_snippets,
            settings=settings,
        )
    except Exception as e:
        logger.exception(f"Error in strategy chat for event {event_id}: {e}")
        raise HTTPException(status_code=500, detail="Failed to process chat request")

    return StrategyChatResponse(response=answer)


# =============================================================================
# GET /csp-events/{event_id}/projections - Volume Projections
# =============================================================================


@router.get("/{event_id}/projections", response_model=VolumeProjection)
async def get_projections(
    event_id: str,
    timeframe_months: Optional[int] = Query(
        None,
        ge=1,
        description="Observed window in months; derived from the ship-date range when omitted"
    ),
) -> VolumeProjection:
    """Project monthly and annual volume and spend from the persisted summary."""
    try:
        summary = await load_persisted_summary(event_id)
    except Exception as e:
        logger.exception(f"Error loading strategy summary for event {event_id}: {e}")
        raise HTTPException(status_code=500, detail="Failed to load strategy summary")

    if summary is None:
        raise HTTPException(status_code=404, detail=f"No strategy summary for CSP event {event_id}")

    return calculate_volume_projections(summary, timeframe_months)


__all__ = ["router"]
