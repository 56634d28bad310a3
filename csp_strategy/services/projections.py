"""
Volume Projection Service

Extrapolates a strategy summary's observed volume and spend to monthly and
annual figures for bid sizing.

The observed window is the summary's ship-date range counted in calendar
months, inclusive (Jan 2 to Mar 28 is 3 months). Without a date range a
12-month window is assumed. Rounding is half-up, so 2.5 shipments round to 3.
"""

from datetime import date
from typing import Optional

from csp_strategy.models import StrategySummary, VolumeProjection
from csp_strategy.services.aggregation import round_half_up

DEFAULT_TIMEFRAME_MONTHS: int = 12


def months_between(start: date, end: date) -> int:
    """Inclusive calendar months spanned by two dates, minimum 1."""
    if end < start:
        start, end = end, start
    return max(1, (end.year - start.year) * 12 + (end.month - start.month) + 1)


def calculate_volume_projections(
    summary: StrategySummary,
    timeframe_months: Optional[int] = None,
) -> VolumeProjection:
    """
    Project monthly and annual volume and spend from a summary.

    Args:
        summary: Persisted strategy summary
        timeframe_months: Override for the observed window; derived from the
            date range when omitted

    Returns:
        VolumeProjection
    """
    if timeframe_months is None or timeframe_months < 1:
        if summary.date_range_start and summary.date_range_end:
            timeframe_months = months_between(summary.date_range_start, summary.date_range_end)
        else:
            timeframe_months = DEFAULT_TIMEFRAME_MONTHS

    shipments = summary.shipment_count
    avg_cost = summary.total_spend / shipments if shipments > 0 else 0.0

    per_month = shipments / timeframe_months
    annual_shipments = round_half_up(per_month * 12)
    annual_spend = round_half_up(avg_cost * annual_shipments)

    return VolumeProjection(
        total_shipments=shipments,
        monthly_shipments=round_half_up(per_month),
        annual_shipments=annual_shipments,
        data_timeframe_months=timeframe_months,
        data_start_date=summary.date_range_start,
        data_end_date=summary.date_range_end,
        avg_cost_per_shipment=round(avg_cost, 2),
        projected_monthly_spend=round_half_up(annual_spend / 12),
        projected_annual_spend=annual_spend,
    )


__all__ = [
    'DEFAULT_TIMEFRAME_MONTHS',
    'months_between',
    'calculate_volume_projections',
]
