"""
Pydantic models for the CSP Strategy backend.

This module defines the normalized input records consumed by the aggregation
core, the aggregate models that make up a strategy summary, the summary
itself, and the request/response contracts of the API.

All models use Pydantic v2 syntax. StrategySummary and its parts are frozen:
a summary is built once per invocation and never mutated afterwards.
"""

from datetime import datetime, date as DateType
from typing import Dict, List, Optional, Any, Union

from pydantic import BaseModel, Field, ConfigDict

from csp_strategy.models.enums import NarrativeSource, OwnershipType


# A raw cost may arrive as a CSV string ("$1,200.50") or as an already-parsed number
RawCost = Union[str, float, int, None]


# =============================================================================
# Normalized Input Records
# =============================================================================


class TransactionRecord(BaseModel):
    """
    One shipment from the transaction-detail export, keyed canonically.

    Cost is kept raw; validity (non-empty carrier, numeric cost) is decided by
    the aggregator, not here.
    """
    model_config = ConfigDict(
        frozen=True,
        json_schema_extra={
            "example": {
                "carrier": "ABCD",
                "cost": "$1,250.00",
                "ownership": "Rocket CSP",
                "origin_city": "Dallas",
                "dest_city": "Atlanta",
                "ship_date": "2025-03-14",
            }
        }
    )

    carrier: str = Field(default="", description="Carrier code (SCAC) or name as exported")
    cost: RawCost = Field(default=None, description="Billed cost, raw")
    ownership: str = Field(default="", description="Free-text pricing ownership")
    origin_city: str = Field(default="", description="Origin city")
    dest_city: str = Field(default="", description="Destination city")
    ship_date: Optional[str] = Field(default=None, description="Ship date, raw")


class OpportunityRecord(BaseModel):
    """One row of the low-cost-opportunity export, keyed canonically."""
    model_config = ConfigDict(frozen=True)

    load_id: str = Field(default="", description="Load identifier")
    selected_carrier: str = Field(default="", description="Carrier actually used")
    selected_cost: RawCost = Field(default=None, description="Cost of the carrier used")
    opportunity_carrier: str = Field(default="", description="Cheaper alternate carrier")
    opportunity_cost: RawCost = Field(default=None, description="Cost quoted by the alternate")


class CarrierDirectoryEntry(BaseModel):
    """A {code, name} pair from the carrier directory."""
    code: str = Field(..., description="Carrier code (SCAC)")
    name: str = Field(..., description="Canonical display name")


# =============================================================================
# Aggregates
# =============================================================================


class CarrierAggregate(BaseModel):
    """
    Per-carrier volume and spend.

    percentage is this carrier's share of valid shipments, rounded to one
    decimal. ownership_type is the strict-majority classification across the
    carrier's rows, or None on a tie or with no classified rows.
    """
    model_config = ConfigDict(frozen=True)

    carrier: str
    shipments: int = Field(..., ge=0)
    spend: float
    percentage: float = Field(..., ge=0, le=100)
    ownership_type: Optional[OwnershipType] = None
    ownership_breakdown: Dict[str, int] = Field(default_factory=dict)


class TopCarrier(BaseModel):
    """A carrier in top_carriers: share of volume only, no spend."""
    model_config = ConfigDict(frozen=True)

    carrier: str
    percentage: float = Field(..., ge=0, le=100)


class LaneAggregate(BaseModel):
    """Volume and spend for one origin → destination lane."""
    model_config = ConfigDict(frozen=True)

    lane: str
    shipments: int = Field(..., ge=0)
    spend: float


class SavingsAggregate(BaseModel):
    """Missed savings attributed to the carrier that was actually selected."""
    model_config = ConfigDict(frozen=True)

    carrier: str
    opportunities: int = Field(..., ge=0)
    savings: float = Field(..., ge=0)


# =============================================================================
# Strategy Summary
# =============================================================================


class StrategySummary(BaseModel):
    """
    Complete strategy summary for a CSP event.

    Recomputed wholesale on every invocation and written over any previous
    summary on the event.
    """
    model_config = ConfigDict(
        frozen=True,
        json_schema_extra={
            "example": {
                "generated_at": "2026-01-15T10:30:00Z",
                "shipment_count": 2,
                "lane_count": 0,
                "shipment_lane_count": 1,
                "total_spend": 300.0,
                "brokerage_spend": 300.0,
                "brokerage_shipments": 2,
                "brokerage_percentage": 100.0,
                "customer_direct_spend": 0.0,
                "customer_direct_shipments": 0,
                "customer_direct_percentage": 0.0,
                "date_range_start": "2025-01-02",
                "date_range_end": "2025-03-28",
                "top_carriers": [{"carrier": "Acme Trucking", "percentage": 100.0}],
                "carrier_breakdown": [],
                "top_lanes": [],
                "missed_savings_by_carrier": [],
                "lost_opportunity_count": 0,
                "lost_opportunity_total": 0.0,
                "summary_text": "...",
                "narrative_source": "template",
            }
        }
    )

    generated_at: datetime
    shipment_count: int = Field(..., ge=0)
    # Distinct load ids among positive-diff opportunity rows
    lane_count: int = Field(..., ge=0)
    # Distinct known origin → destination lanes in the transaction data
    shipment_lane_count: int = Field(default=0, ge=0)
    total_spend: float

    brokerage_spend: float = 0.0
    brokerage_shipments: int = Field(default=0, ge=0)
    brokerage_percentage: float = 0.0
    customer_direct_spend: float = 0.0
    customer_direct_shipments: int = Field(default=0, ge=0)
    customer_direct_percentage: float = 0.0

    date_range_start: Optional[DateType] = None
    date_range_end: Optional[DateType] = None

    top_carriers: List[TopCarrier] = Field(default_factory=list)
    carrier_breakdown: List[CarrierAggregate] = Field(default_factory=list)
    top_lanes: List[LaneAggregate] = Field(default_factory=list)
    missed_savings_by_carrier: List[SavingsAggregate] = Field(default_factory=list)

    lost_opportunity_count: int = Field(default=0, ge=0)
    lost_opportunity_total: float = Field(default=0.0, ge=0)

    summary_text: str = ""
    narrative_source: NarrativeSource = NarrativeSource.TEMPLATE


# =============================================================================
# API Contracts
# =============================================================================


class GenerateSummaryRequest(BaseModel):
    """Provided-data mode request: already-parsed rows from both documents."""
    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "txn_data": [{"carrier": "ABCD", "cost": "100", "origin_city": "Dallas", "dest_city": "Atlanta"}],
                "lo_data": [{"load_id": "L1", "selected_carrier": "XYZ", "selected_cost": "500",
                             "opportunity_carrier": "ABCD", "opportunity_cost": "400"}],
            }
        }
    )

    txn_data: List[Dict[str, Any]] = Field(default_factory=list)
    lo_data: List[Dict[str, Any]] = Field(default_factory=list)
    instructions: Optional[str] = Field(
        default=None,
        description="Optional system instructions for the AI narrative"
    )
    knowledge_snippets: List[str] = Field(
        default_factory=list,
        description="Optional knowledge-base passages passed to the AI narrative"
    )


class RefreshSummaryRequest(BaseModel):
    """Refresh mode request: documents are re-fetched from the store."""
    instructions: Optional[str] = None
    knowledge_snippets: List[str] = Field(default_factory=list)


class StrategySummaryResponse(BaseModel):
    success: bool = True
    summary: StrategySummary


class ChatMessage(BaseModel):
    role: str = Field(..., description="'user' or 'assistant'")
    content: str


class StrategyChatRequest(BaseModel):
    """A free-text question about an event's persisted strategy summary."""
    message: str = Field(..., min_length=1)
    conversation_history: List[ChatMessage] = Field(default_factory=list)
    instructions: Optional[str] = None
    knowledge_snippets: List[str] = Field(default_factory=list)


class StrategyChatResponse(BaseModel):
    response: str


class VolumeProjection(BaseModel):
    """Monthly and annual volume/spend projections derived from a summary."""
    model_config = ConfigDict(frozen=True)

    total_shipments: int = Field(..., ge=0)
    monthly_shipments: int = Field(..., ge=0)
    annual_shipments: int = Field(..., ge=0)
    data_timeframe_months: int = Field(..., ge=1)
    data_start_date: Optional[DateType] = None
    data_end_date: Optional[DateType] = None
    avg_cost_per_shipment: float = 0.0
    projected_monthly_spend: int = 0
    projected_annual_spend: int = 0
