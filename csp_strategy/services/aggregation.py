"""
Shipment Aggregation Service

Folds normalized transaction records into the carrier, lane, ownership and
date-range statistics of a strategy summary.

The fold is a pure function of (records, directory, vocabulary): no IO and no
state outside the call, so running it twice over the same input yields
identical aggregates.

Validity:
- A record counts only if its carrier resolves to a non-empty label AND its
  cost parses as a number once '$', ',' and whitespace are stripped
- Invalid records are skipped silently and appear in no count or total

Ordering:
- carrier_breakdown: shipments DESC, ties in first-seen order
- top_lanes: shipments DESC, ties in first-seen order, "Unknown" excluded
"""

from dataclasses import dataclass, field
from datetime import date
from typing import Any, Dict, Iterable, List, Optional, Tuple
import logging
import math

import pandas as pd

from csp_strategy.models import (
    CarrierAggregate,
    LaneAggregate,
    OwnershipType,
    TopCarrier,
    TransactionRecord,
)
from csp_strategy.services.carrier_directory import CarrierDirectory
from csp_strategy.services.ownership import (
    DEFAULT_OWNERSHIP_VOCABULARY,
    OwnershipVocabulary,
    classify_ownership,
)

logger = logging.getLogger(__name__)

# =============================================================================
# CONSTANTS
# =============================================================================

UNKNOWN_LANE: str = 'Unknown'
LANE_SEPARATOR: str = ' → '

DEFAULT_TOP_CARRIER_LIMIT: int = 3
DEFAULT_TOP_LANE_LIMIT: int = 5

# Keys of CarrierAggregate.ownership_breakdown
OWNERSHIP_BREAKDOWN_KEYS: Tuple[str, ...] = (
    OwnershipType.BROKERAGE.value,
    OwnershipType.CUSTOMER_DIRECT.value,
    'none',
)

_COST_STRIP_TABLE = str.maketrans('', '', '$, \t')

# Percentages are apportioned in tenths of a percent
_PERCENT_TENTHS: int = 1000


# =============================================================================
# Value Parsing
# =============================================================================

def parse_cost(value: Any) -> Optional[float]:
    """
    Parse a raw cost into a float.

    Returns None for missing, non-numeric, or non-finite values.

    Example:
        >>> parse_cost('$1,250.50')
        1250.5
        >>> parse_cost('n/a') is None
        True
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        number = float(value)
    else:
        text = str(value).translate(_COST_STRIP_TABLE)
        if not text:
            return None
        try:
            number = float(text)
        except ValueError:
            return None
    return number if math.isfinite(number) else None


def round_half_up(value: float) -> int:
    """Round to the nearest integer with halves going up, e.g. 2.5 -> 3."""
    return int(math.floor(value + 0.5))


def apportion_percentages(counts: List[int], total: int) -> List[float]:
    """
    One-decimal shares of ``total`` that add up to exactly 100.0.

    Uses largest-remainder apportionment over tenths of a percent: every
    share is floored, then the leftover tenths go to the largest remainders.
    Equal remainders are served in input order.

    Example:
        >>> apportion_percentages([1, 1, 1, 1, 1, 1], 6)
        [16.7, 16.7, 16.7, 16.7, 16.6, 16.6]
    """
    if total <= 0:
        return [0.0 for _ in counts]

    tenths = [count * _PERCENT_TENTHS // total for count in counts]
    remainders = [count * _PERCENT_TENTHS % total for count in counts]
    leftover = _PERCENT_TENTHS - sum(tenths)

    by_remainder = sorted(range(len(counts)), key=lambda i: (-remainders[i], i))
    for index in by_remainder[:leftover]:
        tenths[index] += 1

    return [share / 10 for share in tenths]


def build_lane_key(origin: Optional[str], dest: Optional[str]) -> str:
    """Return "Origin → Destination", or "Unknown" when either side is blank."""
    origin = (origin or '').strip()
    dest = (dest or '').strip()
    if not origin or not dest:
        return UNKNOWN_LANE
    return f"{origin}{LANE_SEPARATOR}{dest}"


def majority_ownership(breakdown: Dict[str, int]) -> Optional[OwnershipType]:
    """
    Strict-majority ownership across a carrier's classified rows.

    Rows classified as None do not vote. Zero votes or a tie yields None.
    """
    brokerage = breakdown.get(OwnershipType.BROKERAGE.value, 0)
    customer_direct = breakdown.get(OwnershipType.CUSTOMER_DIRECT.value, 0)
    if brokerage > customer_direct:
        return OwnershipType.BROKERAGE
    if customer_direct > brokerage:
        return OwnershipType.CUSTOMER_DIRECT
    return None


def compute_date_range(raw_dates: List[str]) -> Tuple[Optional[date], Optional[date]]:
    """
    Earliest and latest parseable ship date.

    Unparseable values are ignored. Mixed formats are accepted.
    """
    if not raw_dates:
        return None, None

    parsed = pd.to_datetime(pd.Series(raw_dates), errors='coerce', format='mixed', utc=True)
    parsed = parsed.dropna()
    if parsed.empty:
        return None, None

    return parsed.min().date(), parsed.max().date()


# =============================================================================
# Aggregate Result
# =============================================================================

@dataclass(frozen=True)
class TransactionAggregates:
    """
    Output of aggregate_transactions.

    Attributes:
        shipment_count: Number of valid records
        total_spend: Sum of valid costs
        carrier_breakdown: Every carrier, sorted by shipments DESC
        top_carriers: Leading carriers with percentage only
        top_lanes: Leading known lanes by shipments
        lane_count: Distinct known lanes (excluding "Unknown")
        brokerage_spend / brokerage_shipments: Rows classified brokerage
        customer_direct_spend / customer_direct_shipments: Rows classified customer_direct
        date_range_start / date_range_end: Ship date bounds, if any parsed
    """
    shipment_count: int = 0
    total_spend: float = 0.0
    carrier_breakdown: Tuple[CarrierAggregate, ...] = field(default_factory=tuple)
    top_carriers: Tuple[TopCarrier, ...] = field(default_factory=tuple)
    top_lanes: Tuple[LaneAggregate, ...] = field(default_factory=tuple)
    lane_count: int = 0
    brokerage_spend: float = 0.0
    brokerage_shipments: int = 0
    customer_direct_spend: float = 0.0
    customer_direct_shipments: int = 0
    date_range_start: Optional[date] = None
    date_range_end: Optional[date] = None


# =============================================================================
# Aggregation
# =============================================================================

def aggregate_transactions(
    records: Iterable[TransactionRecord],
    directory: CarrierDirectory,
    vocabulary: OwnershipVocabulary = DEFAULT_OWNERSHIP_VOCABULARY,
    top_carrier_limit: int = DEFAULT_TOP_CARRIER_LIMIT,
    top_lane_limit: int = DEFAULT_TOP_LANE_LIMIT,
) -> TransactionAggregates:
    """
    Fold transaction records into carrier, lane and ownership aggregates.

    Args:
        records: Normalized transaction records
        directory: Carrier code → name directory for this invocation
        vocabulary: Ownership token sets
        top_carrier_limit: Size of top_carriers
        top_lane_limit: Size of top_lanes

    Returns:
        TransactionAggregates with all derived statistics.
    """
    # Insertion order of these dicts is the first-seen tie-break order
    carrier_stats: Dict[str, Dict[str, Any]] = {}
    lane_stats: Dict[str, Dict[str, Any]] = {}
    raw_dates: List[str] = []

    shipment_count = 0
    total_spend = 0.0
    brokerage_spend = 0.0
    brokerage_shipments = 0
    customer_direct_spend = 0.0
    customer_direct_shipments = 0
    skipped = 0

    for record in records:
        carrier = directory.resolve(record.carrier)
        cost = parse_cost(record.cost)
        if not carrier or cost is None:
            skipped += 1
            continue

        shipment_count += 1
        total_spend += cost

        stats = carrier_stats.setdefault(carrier, {
            'shipments': 0,
            'spend': 0.0,
            'ownership': {key: 0 for key in OWNERSHIP_BREAKDOWN_KEYS},
        })
        stats['shipments'] += 1
        stats['spend'] += cost

        ownership = classify_ownership(record.ownership, vocabulary)
        if ownership is OwnershipType.BROKERAGE:
            brokerage_spend += cost
            brokerage_shipments += 1
        elif ownership is OwnershipType.CUSTOMER_DIRECT:
            customer_direct_spend += cost
            customer_direct_shipments += 1
        stats['ownership'][ownership.value if ownership else 'none'] += 1

        lane = build_lane_key(record.origin_city, record.dest_city)
        lane_entry = lane_stats.setdefault(lane, {'shipments': 0, 'spend': 0.0})
        lane_entry['shipments'] += 1
        lane_entry['spend'] += cost

        if record.ship_date:
            raw_dates.append(record.ship_date)

    if skipped:
        logger.debug(f"Skipped {skipped} transaction rows without a carrier or numeric cost")

    ranked_carriers = sorted(carrier_stats.items(), key=lambda item: -item[1]['shipments'])
    percentages = apportion_percentages(
        [stats['shipments'] for _, stats in ranked_carriers], shipment_count,
    )
    carrier_breakdown = tuple(
        CarrierAggregate(
            carrier=carrier,
            shipments=stats['shipments'],
            spend=stats['spend'],
            percentage=percentage,
            ownership_type=majority_ownership(stats['ownership']),
            ownership_breakdown=dict(stats['ownership']),
        )
        for (carrier, stats), percentage in zip(ranked_carriers, percentages)
    )

    top_carriers = tuple(
        TopCarrier(carrier=entry.carrier, percentage=entry.percentage)
        for entry in carrier_breakdown[:top_carrier_limit]
    )

    known_lanes = [(lane, stats) for lane, stats in lane_stats.items() if lane != UNKNOWN_LANE]
    ranked_lanes = sorted(known_lanes, key=lambda item: -item[1]['shipments'])
    top_lanes = tuple(
        LaneAggregate(lane=lane, shipments=stats['shipments'], spend=stats['spend'])
        for lane, stats in ranked_lanes[:top_lane_limit]
    )

    date_range_start, date_range_end = compute_date_range(raw_dates)

    return TransactionAggregates(
        shipment_count=shipment_count,
        total_spend=total_spend,
        carrier_breakdown=carrier_breakdown,
        top_carriers=top_carriers,
        top_lanes=top_lanes,
        lane_count=len(known_lanes),
        brokerage_spend=brokerage_spend,
        brokerage_shipments=brokerage_shipments,
        customer_direct_spend=customer_direct_spend,
        customer_direct_shipments=customer_direct_shipments,
        date_range_start=date_range_start,
        date_range_end=date_range_end,
    )


__all__ = [
    'UNKNOWN_LANE',
    'LANE_SEPARATOR',
    'DEFAULT_TOP_CARRIER_LIMIT',
    'DEFAULT_TOP_LANE_LIMIT',
    'OWNERSHIP_BREAKDOWN_KEYS',
    'parse_cost',
    'round_half_up',
    'apportion_percentages',
    'build_lane_key',
    'majority_ownership',
    'compute_date_range',
    'TransactionAggregates',
    'aggregate_transactions',
]
