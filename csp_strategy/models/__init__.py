"""
Package initialization file for the CSP Strategy models.

Re-exports all Pydantic schemas and enumerations so other modules can import
them from csp_strategy.models directly.

Usage:
    from csp_strategy.models import (
        OwnershipType,
        TransactionRecord,
        StrategySummary,
    )
"""

# =============================================================================
# Enums
# =============================================================================

from csp_strategy.models.enums import (
    OwnershipType,
    DocumentType,
    NarrativeSource,
)

# =============================================================================
# Schemas
# =============================================================================

from csp_strategy.models.schemas import (
    # Normalized inputs
    RawCost,
    TransactionRecord,
    OpportunityRecord,
    CarrierDirectoryEntry,
    # Aggregates
    CarrierAggregate,
    TopCarrier,
    LaneAggregate,
    SavingsAggregate,
    # Summary
    StrategySummary,
    # API contracts
    GenerateSummaryRequest,
    RefreshSummaryRequest,
    StrategySummaryResponse,
    ChatMessage,
    StrategyChatRequest,
    StrategyChatResponse,
    VolumeProjection,
)

__all__ = [
    'OwnershipType',
    'DocumentType',
    'NarrativeSource',
    'RawCost',
    'TransactionRecord',
    'OpportunityRecord',
    'CarrierDirectoryEntry',
    'CarrierAggregate',
    'TopCarrier',
    'LaneAggregate',
    'SavingsAggregate',
    'StrategySummary',
    'GenerateSummaryRequest',
    'RefreshSummaryRequest',
    'StrategySummaryResponse',
    'ChatMessage',
    'StrategyChatRequest',
    'StrategyChatResponse',
    'VolumeProjection',
]
