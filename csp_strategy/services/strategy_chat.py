"""
Strategy Chat Service

Answers free-text questions about a CSP event's persisted strategy summary.

With OpenAI configured, the question is sent together with the same data
context the narrative uses, any knowledge-base passages and the prior
conversation. Without a key, or when the request fails, a deterministic
keyword router answers from the summary alone:

- carriers / bid recommendation
- savings / opportunities
- lanes / routes
- spend / cost / budget
- priorities
- anything else: help text with a quick overview
"""

from typing import Callable, List, Optional, Sequence, Tuple
import logging

from csp_strategy.core.config import Settings, get_settings
from csp_strategy.core.exceptions import NarrativeServiceError
from csp_strategy.models import ChatMessage, StrategySummary
from csp_strategy.services.narrative import (
    DEFAULT_INSTRUCTIONS,
    OpenAINarrativeGenerator,
    build_data_context,
    build_knowledge_message,
    format_currency,
    get_narrative_generator,
)

logger = logging.getLogger(__name__)

NO_SUMMARY_RESPONSE: str = (
    "No strategy data available yet. Please upload transaction and opportunity data first."
)

# Top-3 share of volume above which spend is called "highly concentrated"
CONCENTRATION_THRESHOLD: float = 70.0

# Savings total above which priorities are flagged as high
HIGH_PRIORITY_SAVINGS: float = 50000.0


# =============================================================================
# Deterministic Responder
# =============================================================================

def _carrier_answer(summary: StrategySummary, question: str) -> str:
    top_carriers = summary.carrier_breakdown[:3]
    lines = ["Based on the data analysis:", ""]

    if not any(word in question for word in ('bid', 'csp', 'sense')):
        lines.append("**Top Carriers by Volume:**")
        for i, c in enumerate(top_carriers, 1):
            lines.append(f"{i}. {c.carrier} - {c.shipments} shipments ({c.percentage}% of volume)")
        if not top_carriers:
            lines.append("No carrier data available.")
        return "\n".join(lines)

    lines.append("**Carriers to Include in CSP Bid:**")
    lines.append("")
    lines.append("1. **Current High-Volume Carriers** (for competitive pressure):")
    for i, c in enumerate(top_carriers, 1):
        lines.append(f"   {i}. {c.carrier} - {c.percentage}% of volume ({format_currency(c.spend)} spend)")

    if summary.missed_savings_by_carrier:
        lines.append("")
        lines.append("2. **Carriers with Savings Opportunities** (renegotiation targets):")
        for i, m in enumerate(summary.missed_savings_by_carrier[:3], 1):
            lines.append(
                f"   {i}. {m.carrier} - {format_currency(m.savings)} in potential savings "
                f"across {m.opportunities} loads"
            )

    lines.append("")
    lines.append(
        "**Recommendation:** Include your top 3 volume carriers plus 2-3 alternative carriers "
        "who could offer better rates. This creates competitive tension while maintaining "
        "service continuity."
    )
    return "\n".join(lines)


def _savings_answer(summary: StrategySummary, question: str) -> str:
    lines = [
        "**Savings Analysis:**",
        "",
        f"Total identified savings opportunity: **{format_currency(summary.lost_opportunity_total)}**",
    ]
    missed = summary.missed_savings_by_carrier
    if missed:
        lines.append("")
        lines.append("Top carriers where you're overpaying:")
        for i, m in enumerate(missed[:5], 1):
            lines.append(f"{i}. {m.carrier} - {format_currency(m.savings)} ({m.opportunities} loads)")
        lines.extend([
            "",
            "**Action Steps:**",
            f"1. Prioritize renegotiations with {missed[0].carrier} (largest opportunity)",
            "2. Use lower-cost alternatives as leverage in negotiations",
            "3. Consider shifting volume to carriers offering better rates on these lanes",
        ])
    return "\n".join(lines)


def _lane_answer(summary: StrategySummary, question: str) -> str:
    lines = ["**Lane Analysis:**", "", "Top lanes by volume:"]
    for i, lane in enumerate(summary.top_lanes[:5], 1):
        lines.append(f"{i}. {lane.lane} - {lane.shipments} shipments, {format_currency(lane.spend)} spend")
    if not summary.top_lanes:
        lines.append("No lane data available.")
    lines.append("")
    lines.append(
        "**Insight:** Focus your CSP bid on these high-volume lanes to maximize impact "
        "and leverage economies of scale."
    )
    return "\n".join(lines)


def _spend_answer(summary: StrategySummary, question: str) -> str:
    lines = [
        "**Spend Analysis:**",
        "",
        f"Total shipping spend: **{format_currency(summary.total_spend)}**",
        "",
        "Spend concentration:",
    ]
    for i, c in enumerate(summary.carrier_breakdown[:5], 1):
        lines.append(f"{i}. {c.carrier} - {format_currency(c.spend)} ({c.percentage}%)")

    top3_share = sum(c.percentage for c in summary.carrier_breakdown[:3])
    if top3_share > CONCENTRATION_THRESHOLD:
        remark = "This high concentration gives you strong negotiating leverage."
    else:
        remark = "Consider consolidating volume for better negotiating power."
    lines.append("")
    lines.append(f"Your top 3 carriers represent {top3_share:.1f}% of total volume. {remark}")
    return "\n".join(lines)


def _priority_answer(summary: StrategySummary, question: str) -> str:
    lines = ["**Priority Actions:**", ""]
    if summary.lost_opportunity_total > HIGH_PRIORITY_SAVINGS:
        lines.append(
            f"⚠️ **High Priority** - You have {format_currency(summary.lost_opportunity_total)} "
            f"in identified savings opportunities."
        )
        lines.append("")

    if summary.missed_savings_by_carrier:
        largest = summary.missed_savings_by_carrier[0]
        lines.append(
            f"1. **Immediate:** Renegotiate with {largest.carrier} "
            f"({format_currency(largest.savings)} opportunity)"
        )
    else:
        lines.append("1. **Immediate:** Benchmark current rates against market alternatives")

    lines.extend([
        "2. **This Quarter:** Launch CSP bid focusing on top 5 lanes",
        "3. **Ongoing:** Implement monthly rate benchmarking",
        "",
        "Expected timeline: 60-90 days for CSP completion, with immediate quick wins "
        "possible through spot negotiations.",
    ])
    return "\n".join(lines)


def _help_answer(summary: StrategySummary) -> str:
    if summary.carrier_breakdown:
        leader = summary.carrier_breakdown[0]
        top_line = f"- Your top carrier is {leader.carrier} with {leader.percentage}% of volume"
    else:
        top_line = "- No carrier data is available yet"

    return "\n".join([
        "I can help you analyze this strategy data. Here are some things you can ask me:",
        "",
        '• "Which carriers should I include in my CSP bid?"',
        '• "What are my biggest savings opportunities?"',
        '• "What are my top lanes?"',
        '• "How is my spend distributed?"',
        '• "What should I prioritize?"',
        "",
        "**Quick Overview:**",
        f"- You're spending {format_currency(summary.total_spend)} across {summary.shipment_count} shipments",
        f"- There's {format_currency(summary.lost_opportunity_total)} in potential savings",
        top_line,
        "",
        "What specific aspect would you like to explore?",
    ])


def _asks_about_carriers(question: str) -> bool:
    return 'carrier' in question and any(word in question for word in ('which', 'what', 'recommend'))


# First matching topic answers; order matters ("what carrier saves most" is a carrier question)
_TOPICS: List[Tuple[Callable[[str], bool], Callable[[StrategySummary, str], str]]] = [
    (_asks_about_carriers, _carrier_answer),
    (lambda q: any(w in q for w in ('saving', 'save', 'opportunity')), _savings_answer),
    (lambda q: any(w in q for w in ('lane', 'route')), _lane_answer),
    (lambda q: any(w in q for w in ('spend', 'cost', 'budget')), _spend_answer),
    (lambda q: any(w in q for w in ('priorit', 'urgent', 'first')), _priority_answer),
]


def build_fallback_answer(summary: StrategySummary, question: str) -> str:
    """
    Answer a question from the summary alone, by keyword topic.

    Example:
        'What are my top lanes?' is answered with the "**Lane Analysis:**" block.
    """
    lowered = (question or '').lower()
    for matches, answer in _TOPICS:
        if matches(lowered):
            return answer(summary, lowered)
    return _help_answer(summary)


# =============================================================================
# Chat Entry Point
# =============================================================================

def build_chat_messages(
    summary: StrategySummary,
    question: str,
    history: Optional[Sequence[ChatMessage]] = None,
    instructions: Optional[str] = None,
    knowledge_snippets: Optional[Sequence[str]] = None,
) -> List[dict]:
    """System prompt, data context, knowledge base, prior turns, then the question."""
    messages = [
        {"role": "system", "content": instructions or DEFAULT_INSTRUCTIONS},
        {"role": "system", "content": build_data_context(summary)},
    ]
    knowledge = build_knowledge_message(knowledge_snippets or [])
    if knowledge:
        messages.append({"role": "system", "content": knowledge})

    for turn in history or []:
        role = 'user' if turn.role == 'user' else 'assistant'
        messages.append({"role": role, "content": turn.content})

    messages.append({"role": "user", "content": question})
    return messages


async def answer_strategy_question(
    summary: StrategySummary,
    question: str,
    history: Optional[Sequence[ChatMessage]] = None,
    instructions: Optional[str] = None,
    knowledge_snippets: Optional[Sequence[str]] = None,
    settings: Optional[Settings] = None,
) -> str:
    """
    Answer a question about a strategy summary.

    Never raises on AI failure; the keyword responder answers instead.
    """
    settings = settings or get_settings()
    generator = get_narrative_generator(settings)

    if not isinstance(generator, OpenAINarrativeGenerator):
        return build_fallback_answer(summary, question)

    messages = build_chat_messages(summary, question, history, instructions, knowledge_snippets)
    try:
        return await generator.complete(messages)
    except NarrativeServiceError as e:
        logger.warning(f"AI chat unavailable, using keyword responder: {e}")
        return build_fallback_answer(summary, question)


__all__ = [
    'NO_SUMMARY_RESPONSE',
    'CONCENTRATION_THRESHOLD',
    'build_fallback_answer',
    'build_chat_messages',
    'answer_strategy_question',
]
