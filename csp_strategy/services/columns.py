"""
Column Alias Resolution

Source exports name the same column many ways ("Carrier", "SCAC", "Carrier
Name"...). Upstream mapping normally renames columns to canonical keys before
rows reach the engine; when a canonical key is missing, the engine falls back
to the fixed alias lists below.

Matching is a pure function of a header list, so it can be audited and tested
without live CSVs. Headers are compared after lowercasing and folding spaces
and hyphens to underscores ("Pricing Ownership" == "pricing_ownership").
"""

from typing import Any, Dict, Iterable, List, Mapping, Optional
import re

from csp_strategy.models import OpportunityRecord, TransactionRecord


# =============================================================================
# CONSTANTS - Canonical Key → Ordered Header Aliases
# =============================================================================

# The canonical key itself is always tried first; aliases follow in priority order
TRANSACTION_COLUMN_ALIASES: Dict[str, List[str]] = {
    'carrier': ['carrier', 'scac', 'carrier_scac', 'scac_code', 'carrier_name'],
    'cost': ['cost', 'bill', 'total_cost', 'total_bill', 'carrier_cost', 'spend', 'amount'],
    'ownership': ['ownership', 'pricing_ownership', 'ownership_type', 'pricing_type'],
    'origin_city': ['origin_city', 'origin', 'orig_city', 'shipper_city', 'from_city'],
    'dest_city': ['dest_city', 'destination_city', 'destination', 'consignee_city', 'to_city'],
    'ship_date': ['ship_date', 'pickup_date', 'shipped_date', 'date'],
}

OPPORTUNITY_COLUMN_ALIASES: Dict[str, List[str]] = {
    'load_id': ['load_id', 'loadid', 'load', 'load_number', 'shipment_id'],
    'selected_carrier': ['selected_carrier', 'selected_carrier_name', 'selected_carrier_scac', 'selected_scac'],
    'selected_cost': ['selected_cost', 'selected_carrier_cost'],
    'opportunity_carrier': ['opportunity_carrier', 'lo_carrier', 'lo_carrier_name', 'lo_carrier_scac', 'lo_scac'],
    'opportunity_cost': ['opportunity_cost', 'lo_carrier_cost', 'lo_cost'],
}

_SEPARATORS = re.compile(r'[\s\-]+')


def normalize_header(header: str) -> str:
    """Lowercase a header and fold runs of spaces/hyphens to one underscore."""
    return _SEPARATORS.sub('_', str(header).strip().lower())


def match_column(
    headers: Iterable[str],
    canonical_key: str,
    aliases: Mapping[str, List[str]],
) -> Optional[str]:
    """
    Find the header that supplies a canonical key.

    Args:
        headers: Header names as they appear on the row
        canonical_key: The key being resolved (e.g. 'carrier')
        aliases: Alias table for the document kind

    Returns:
        The original header name, or None when nothing matches.

    Example:
        >>> match_column(['Load', 'Carrier Name', 'Bill'], 'cost', TRANSACTION_COLUMN_ALIASES)
        'Bill'
    """
    by_normalized: Dict[str, str] = {}
    for header in headers:
        by_normalized.setdefault(normalize_header(header), header)

    candidates = [canonical_key] + list(aliases.get(canonical_key, []))
    for candidate in candidates:
        found = by_normalized.get(normalize_header(candidate))
        if found is not None:
            return found
    return None


def _text(value: Any) -> str:
    if value is None:
        return ''
    return str(value).strip()


def _raw_cost(value: Any) -> Any:
    # Numbers pass through untouched; everything else is kept as text
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return value
    text = _text(value)
    return text or None


def _extract(row: Mapping[str, Any], aliases: Mapping[str, List[str]]) -> Dict[str, Any]:
    headers = list(row.keys())
    extracted: Dict[str, Any] = {}
    for canonical_key in aliases:
        header = match_column(headers, canonical_key, aliases)
        extracted[canonical_key] = row.get(header) if header is not None else None
    return extracted


def normalize_transaction_row(row: Mapping[str, Any]) -> TransactionRecord:
    """Map a raw transaction row onto a TransactionRecord."""
    values = _extract(row, TRANSACTION_COLUMN_ALIASES)
    ship_date = _text(values['ship_date'])
    return TransactionRecord(
        carrier=_text(values['carrier']),
        cost=_raw_cost(values['cost']),
        ownership=_text(values['ownership']),
        origin_city=_text(values['origin_city']),
        dest_city=_text(values['dest_city']),
        ship_date=ship_date or None,
    )


def normalize_opportunity_row(row: Mapping[str, Any]) -> OpportunityRecord:
    """Map a raw low-cost-opportunity row onto an OpportunityRecord."""
    values = _extract(row, OPPORTUNITY_COLUMN_ALIASES)
    return OpportunityRecord(
        load_id=_text(values['load_id']),
        selected_carrier=_text(values['selected_carrier']),
        selected_cost=_raw_cost(values['selected_cost']),
        opportunity_carrier=_text(values['opportunity_carrier']),
        opportunity_cost=_raw_cost(values['opportunity_cost']),
    )


__all__ = [
    'TRANSACTION_COLUMN_ALIASES',
    'OPPORTUNITY_COLUMN_ALIASES',
    'normalize_header',
    'match_column',
    'normalize_transaction_row',
    'normalize_opportunity_row',
]
