"""
Strategy Narrative Service

Produces the human-readable summary_text of a strategy summary.

Two interchangeable implementations share one interface:
- TemplateNarrativeGenerator: deterministic fixed layout built from the
  aggregates (shipment count, top carriers, total spend, missed savings)
- OpenAINarrativeGenerator: sends the serialized aggregates, optional
  instructions and knowledge-base snippets to the OpenAI Chat Completions API

get_narrative_generator() picks one from settings, so the aggregation core
never depends on a specific provider. The AI generator degrades to the
template on any error, timeout or empty reply; a narrative problem never
fails the pipeline.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence
import logging

from openai import AsyncOpenAI

from csp_strategy.core.config import Settings
from csp_strategy.core.exceptions import NarrativeServiceError
from csp_strategy.models import NarrativeSource, StrategySummary
from csp_strategy.services.aggregation import round_half_up

logger = logging.getLogger(__name__)

# =============================================================================
# CONSTANTS
# =============================================================================

DEFAULT_INSTRUCTIONS: str = (
    "You are an expert logistics and carrier strategy analyst helping with CSP "
    "(Carrier Service Provider) bid analysis. You provide clear, actionable insights "
    "based on shipment data. Be specific with numbers and recommendations. Keep "
    "responses concise but informative."
)

SUMMARY_REQUEST: str = (
    "Write a short executive summary of this shipment data for a CSP bid strategy: "
    "volume and spend, carrier concentration, the busiest lanes, and where the "
    "largest missed savings are. Use plain bullet points."
)

# How many entries of each list the data context includes
CONTEXT_LIST_LIMIT: int = 5


# =============================================================================
# Formatting Helpers
# =============================================================================

def format_currency(amount: float) -> str:
    """Whole-dollar currency with thousands separators, e.g. $12,346."""
    return f"${round_half_up(amount or 0):,}"


def build_data_context(summary: StrategySummary) -> str:
    """
    Serialize a summary's aggregates into the prompt data block.

    Shared by the narrative and by strategy chat, so both see identical numbers.
    """
    carriers = [
        f"- {c.carrier}: {c.shipments} shipments ({c.percentage}%), {format_currency(c.spend)} spend"
        for c in summary.carrier_breakdown[:CONTEXT_LIST_LIMIT]
    ]
    lanes = [
        f"- {lane.lane}: {lane.shipments} shipments, {format_currency(lane.spend)} spend"
        for lane in summary.top_lanes[:CONTEXT_LIST_LIMIT]
    ]
    savings = [
        f"- {m.carrier}: {m.opportunities} opportunities, {format_currency(m.savings)} potential savings"
        for m in summary.missed_savings_by_carrier[:CONTEXT_LIST_LIMIT]
    ]

    date_range = 'Not available'
    if summary.date_range_start and summary.date_range_end:
        date_range = f"{summary.date_range_start.isoformat()} to {summary.date_range_end.isoformat()}"

    lines = [
        "Here is the shipment data analysis:",
        f"- Total Shipments: {summary.shipment_count:,}",
        f"- Unique Lanes: {summary.lane_count}",
        f"- Total Spend: {format_currency(summary.total_spend)}",
        f"- Brokerage Spend: {format_currency(summary.brokerage_spend)} ({summary.brokerage_percentage}%)",
        f"- Customer Direct Spend: {format_currency(summary.customer_direct_spend)} "
        f"({summary.customer_direct_percentage}%)",
        f"- Date Range: {date_range}",
        f"- Missed Savings Opportunities: {format_currency(summary.lost_opportunity_total)}",
        f"- Number of Lost Opportunities: {summary.lost_opportunity_count}",
        "",
        "Top Carriers (by volume):",
        "\n".join(carriers) or "No data available",
        "",
        "Top Lanes (by volume):",
        "\n".join(lanes) or "No data available",
        "",
        "Carriers with Missed Savings:",
        "\n".join(savings) or "No data available",
    ]
    return "\n".join(lines)


def build_knowledge_message(knowledge_snippets: Sequence[str]) -> Optional[str]:
    """Wrap knowledge-base passages in a system message body, or None if there are none."""
    snippets = [s.strip() for s in knowledge_snippets or [] if s and s.strip()]
    if not snippets:
        return None
    body = "\n\n".join(snippets)
    return (
        "Knowledge Base Documents (primary source of truth). When answering, prioritize "
        "this company-specific information over general knowledge.\n\n"
        f"{body}"
    )


def render_template_narrative(summary: StrategySummary) -> str:
    """
    Deterministic narrative built only from the aggregates.

    Contains the shipment count, the top carriers with percentages, total
    spend and the missed-savings total.
    """
    if summary.top_carriers:
        top_carriers = ', '.join(f"{c.carrier} ({c.percentage:.1f}%)" for c in summary.top_carriers)
    else:
        top_carriers = 'No carrier data available'

    if summary.lost_opportunity_total > 0:
        savings_line = f"{format_currency(summary.lost_opportunity_total)} in missed savings opportunities"
    else:
        savings_line = 'No lost opportunity data available'

    return "\n".join([
        "**Shipment Analysis**",
        f"• {summary.shipment_count:,} shipments across {summary.lane_count} lanes",
        f"• Top carriers: {top_carriers}",
        f"• Total spend: {format_currency(summary.total_spend)}",
        "",
        "**Opportunities**",
        f"• {savings_line}",
        f"• Lost opportunities tracked: {summary.lost_opportunity_count}",
    ])


# =============================================================================
# Generators
# =============================================================================

@dataclass(frozen=True)
class NarrativeResult:
    text: str
    source: NarrativeSource


class NarrativeGenerator(ABC):
    """Produces summary_text for a fully aggregated (text-less) summary."""

    @abstractmethod
    async def generate(
        self,
        summary: StrategySummary,
        instructions: Optional[str] = None,
        knowledge_snippets: Optional[Sequence[str]] = None,
    ) -> NarrativeResult:
        ...


class TemplateNarrativeGenerator(NarrativeGenerator):
    """Deterministic fallback narrative. Ignores instructions and snippets."""

    async def generate(
        self,
        summary: StrategySummary,
        instructions: Optional[str] = None,
        knowledge_snippets: Optional[Sequence[str]] = None,
    ) -> NarrativeResult:
        return NarrativeResult(text=render_template_narrative(summary), source=NarrativeSource.TEMPLATE)


class OpenAINarrativeGenerator(NarrativeGenerator):
    """
    Narrative from the OpenAI Chat Completions API.

    One request per summary, no retries. Any failure falls back to the
    template narrative.
    """

    def __init__(
        self,
        client: AsyncOpenAI,
        model: str,
        temperature: float = 0.7,
        max_tokens: int = 1000,
        fallback: Optional[NarrativeGenerator] = None,
    ):
        self.client = client
        self.model = model
        self.temperature = temperature
        self.max_tokens = max_tokens
        self.fallback = fallback or TemplateNarrativeGenerator()

    async def complete(self, messages: List[Dict[str, str]]) -> str:
        """
        Send one chat completion request and return the reply text.

        Raises:
            NarrativeServiceError: On any API error, timeout, or empty reply.
        """
        try:
            response = await self.client.chat.completions.create(
                model=self.model,
                messages=messages,
                temperature=self.temperature,
                max_tokens=self.max_tokens,
            )
        except Exception as e:
            raise NarrativeServiceError(f"Chat completion request failed: {e}") from e

        content = response.choices[0].message.content if response.choices else None
        if not content or not content.strip():
            raise NarrativeServiceError("Chat completion returned an empty response")
        return content.strip()

    async def generate(
        self,
        summary: StrategySummary,
        instructions: Optional[str] = None,
        knowledge_snippets: Optional[Sequence[str]] = None,
    ) -> NarrativeResult:
        messages = [
            {"role": "system", "content": instructions or DEFAULT_INSTRUCTIONS},
            {"role": "system", "content": build_data_context(summary)},
        ]
        knowledge = build_knowledge_message(knowledge_snippets or [])
        if knowledge:
            messages.append({"role": "system", "content": knowledge})
        messages.append({"role": "user", "content": SUMMARY_REQUEST})

        try:
            text = await self.complete(messages)
        except NarrativeServiceError as e:
            logger.warning(f"AI narrative unavailable, using template: {e}")
            return await self.fallback.generate(summary, instructions, knowledge_snippets)

        return NarrativeResult(text=text, source=NarrativeSource.AI)


def get_narrative_generator(settings: Settings) -> NarrativeGenerator:
    """
    Select the narrative implementation from configuration.

    OpenAI is used when an API key is configured and narrative_provider is not
    'template'; otherwise the deterministic template.
    """
    if settings.openai_api_key and settings.narrative_provider != 'template':
        client = AsyncOpenAI(
            api_key=settings.openai_api_key,
            timeout=settings.narrative_timeout_seconds,
            max_retries=0,
        )
        return OpenAINarrativeGenerator(
            client=client,
            model=settings.openai_model,
            temperature=settings.narrative_temperature,
            max_tokens=settings.narrative_max_tokens,
        )
    return TemplateNarrativeGenerator()


__all__ = [
    'DEFAULT_INSTRUCTIONS',
    'SUMMARY_REQUEST',
    'format_currency',
    'build_data_context',
    'build_knowledge_message',
    'render_template_narrative',
    'NarrativeResult',
    'NarrativeGenerator',
    'TemplateNarrativeGenerator',
    'OpenAINarrativeGenerator',
    'get_narrative_generator',
]
