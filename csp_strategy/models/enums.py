"""
Enumeration definitions for the CSP Strategy backend.

All enums inherit from both `str` and `Enum` so they serialize as plain strings
in Pydantic models and in the persisted strategy_summary JSON.
"""

from enum import Enum


class OwnershipType(str, Enum):
    """
    Pricing ownership of a shipment.

    - brokerage: seller-operated pricing (the broker's CSP tariff)
    - customer_direct: buyer-negotiated pricing (the shipper's own tariff)

    A row whose ownership cannot be determined is represented as None rather
    than as a third member, so that majority votes can ignore it.
    """
    BROKERAGE = "brokerage"
    CUSTOMER_DIRECT = "customer_direct"


class DocumentType(str, Enum):
    """
    Source document kinds attached to a CSP event.

    - transaction_detail: shipment-level transaction export
    - low_cost_opportunity: alternate-carrier quotes that were cheaper or dearer
      than the carrier actually used
    """
    TRANSACTION_DETAIL = "transaction_detail"
    LOW_COST_OPPORTUNITY = "low_cost_opportunity"


class NarrativeSource(str, Enum):
    """Which narrative implementation produced a summary_text."""
    AI = "ai"
    TEMPLATE = "template"
