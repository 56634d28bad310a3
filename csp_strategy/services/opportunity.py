"""
Missed Savings Service

Folds low-cost-opportunity rows into per-carrier missed savings.

For each row, diff = selected_cost - opportunity_cost. Only rows with a
positive diff count; the diff is attributed to the carrier that was actually
selected (the one that was overpaid). Opportunity rows are processed
independently of transaction rows - no join on load id is enforced.
"""

from dataclasses import dataclass, field
from typing import Dict, Iterable, Set, Tuple
import logging

from csp_strategy.models import OpportunityRecord, SavingsAggregate
from csp_strategy.services.aggregation import parse_cost
from csp_strategy.services.carrier_directory import CarrierDirectory

logger = logging.getLogger(__name__)

DEFAULT_MISSED_SAVINGS_LIMIT: int = 5

# Label used when the selected carrier cell is blank
UNKNOWN_CARRIER: str = 'Unknown'


@dataclass(frozen=True)
class OpportunityAggregates:
    """
    Output of calculate_opportunities.

    Attributes:
        missed_savings_by_carrier: Leading carriers by total savings
        lost_opportunity_total: Sum of every positive diff
        lost_opportunity_count: Distinct load ids among positive-diff rows
        opportunity_row_count: Rows whose two costs both parsed
    """
    missed_savings_by_carrier: Tuple[SavingsAggregate, ...] = field(default_factory=tuple)
    lost_opportunity_total: float = 0.0
    lost_opportunity_count: int = 0
    opportunity_row_count: int = 0


def calculate_opportunities(
    records: Iterable[OpportunityRecord],
    directory: CarrierDirectory,
    limit: int = DEFAULT_MISSED_SAVINGS_LIMIT,
) -> OpportunityAggregates:
    """
    Compute missed savings per selected carrier.

    Args:
        records: Normalized opportunity records
        directory: Carrier code → name directory for this invocation
        limit: Size of missed_savings_by_carrier

    Returns:
        OpportunityAggregates

    Example:
        A row with selected XYZ at 500 and alternate ABCD at 400 yields
        missed_savings_by_carrier == [XYZ: 1 opportunity, 100 savings].
    """
    savings_by_carrier: Dict[str, Dict[str, float]] = {}
    load_ids: Set[str] = set()
    total = 0.0
    parsed_rows = 0

    for record in records:
        selected_cost = parse_cost(record.selected_cost)
        opportunity_cost = parse_cost(record.opportunity_cost)
        if selected_cost is None or opportunity_cost is None:
            continue
        parsed_rows += 1

        diff = selected_cost - opportunity_cost
        if diff <= 0:
            continue

        carrier = directory.resolve(record.selected_carrier) or UNKNOWN_CARRIER
        entry = savings_by_carrier.setdefault(carrier, {'opportunities': 0, 'savings': 0.0})
        entry['opportunities'] += 1
        entry['savings'] += diff
        total += diff

        if record.load_id:
            load_ids.add(record.load_id)

    ranked = sorted(savings_by_carrier.items(), key=lambda item: -item[1]['savings'])
    missed_savings = tuple(
        SavingsAggregate(
            carrier=carrier,
            opportunities=int(entry['opportunities']),
            savings=entry['savings'],
        )
        for carrier, entry in ranked[:limit]
    )

    logger.debug(
        f"Opportunity fold: {parsed_rows} parsed rows, {len(savings_by_carrier)} carriers with savings"
    )

    return OpportunityAggregates(
        missed_savings_by_carrier=missed_savings,
        lost_opportunity_total=total,
        lost_opportunity_count=len(load_ids),
        opportunity_row_count=parsed_rows,
    )


__all__ = [
    'DEFAULT_MISSED_SAVINGS_LIMIT',
    'UNKNOWN_CARRIER',
    'OpportunityAggregates',
    'calculate_opportunities',
]
