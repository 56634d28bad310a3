"""
Ownership Classification Service

Classifies the free-text "pricing ownership" column of a transaction export
into brokerage (seller-operated pricing) or customer_direct (buyer-negotiated
pricing). Anything else, including explicit "not specified" markers, is None.

Classification is strictly per row. The per-carrier majority rollup lives in
the aggregation service.
"""

from dataclasses import dataclass
from typing import Optional, Tuple

from csp_strategy.models import OwnershipType


@dataclass(frozen=True)
class OwnershipVocabulary:
    """
    Immutable token sets used by classify_ownership.

    Brokerage tokens are checked before customer-direct tokens, so a value
    such as "Rocket CSP (customer requested)" is brokerage.

    Attributes:
        brokerage_tokens: Lowercase substrings that mark brokerage pricing
        customer_direct_tokens: Lowercase substrings that mark customer pricing
        unspecified_markers: Whole values meaning "no ownership recorded"
    """
    brokerage_tokens: Tuple[str, ...]
    customer_direct_tokens: Tuple[str, ...]
    unspecified_markers: Tuple[str, ...]


DEFAULT_OWNERSHIP_VOCABULARY = OwnershipVocabulary(
    brokerage_tokens=('rocket', 'brokerage', 'broker', '3pl', 'csp'),
    customer_direct_tokens=('customer direct', 'customer_direct', 'customer', 'shipper', 'direct'),
    unspecified_markers=('not specified', 'unspecified', 'n/a', 'na', 'none', '-'),
)


def classify_ownership(
    text: Optional[str],
    vocabulary: OwnershipVocabulary = DEFAULT_OWNERSHIP_VOCABULARY,
) -> Optional[OwnershipType]:
    """
    Classify a pricing ownership value.

    Args:
        text: Raw ownership cell
        vocabulary: Token sets to match against

    Returns:
        OwnershipType.BROKERAGE, OwnershipType.CUSTOMER_DIRECT, or None.

    Example:
        >>> classify_ownership('Rocket CSP')
        <OwnershipType.BROKERAGE: 'brokerage'>
        >>> classify_ownership('Not Specified') is None
        True
    """
    value = (text or '').strip().lower()
    if not value or value in vocabulary.unspecified_markers:
        return None

    if any(token in value for token in vocabulary.brokerage_tokens):
        return OwnershipType.BROKERAGE
    if any(token in value for token in vocabulary.customer_direct_tokens):
        return OwnershipType.CUSTOMER_DIRECT
    return None


__all__ = [
    'OwnershipVocabulary',
    'DEFAULT_OWNERSHIP_VOCABULARY',
    'classify_ownership',
]
