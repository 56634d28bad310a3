"""
CSP Strategy Services

Business logic for the strategy summary engine. The aggregation core is pure
(no IO); document fetching, the narrative call and persistence are thin async
shells around it.

Services:
- csv_parser: quote-aware CSV tokenizing
- columns: canonical key → header alias resolution
- carrier_directory: carrier code → canonical name
- ownership: brokerage / customer_direct classification
- aggregation: carrier, lane, ownership and date-range statistics
- opportunity: missed savings per selected carrier
- narrative: template and OpenAI summary text
- documents: refresh-mode document lookup and download
- strategy_summary: pipeline entry points and persistence
- strategy_chat: questions about a persisted summary
- projections: monthly/annual volume and spend projections
"""

# =============================================================================
# Parsing and Normalization
# =============================================================================

from csp_strategy.services.csv_parser import parse_csv_text, split_csv_line, clean_field
from csp_strategy.services.columns import (
    TRANSACTION_COLUMN_ALIASES,
    OPPORTUNITY_COLUMN_ALIASES,
    match_column,
    normalize_header,
    normalize_transaction_row,
    normalize_opportunity_row,
)
from csp_strategy.services.carrier_directory import (
    CarrierDirectory,
    build_carrier_directory,
    fetch_carrier_directory,
)
from csp_strategy.services.ownership import (
    OwnershipVocabulary,
    DEFAULT_OWNERSHIP_VOCABULARY,
    classify_ownership,
)

# =============================================================================
# Aggregation Core
# =============================================================================

from csp_strategy.services.aggregation import (
    TransactionAggregates,
    aggregate_transactions,
    parse_cost,
    build_lane_key,
    majority_ownership,
)
from csp_strategy.services.opportunity import OpportunityAggregates, calculate_opportunities

# =============================================================================
# Narrative, Pipeline and Supplements
# =============================================================================

from csp_strategy.services.narrative import (
    NarrativeGenerator,
    NarrativeResult,
    TemplateNarrativeGenerator,
    OpenAINarrativeGenerator,
    get_narrative_generator,
    build_data_context,
)
from csp_strategy.services.documents import load_event_rows, fetch_event_documents
from csp_strategy.services.strategy_summary import (
    assemble_summary,
    build_strategy_summary,
    persist_strategy_summary,
    load_persisted_summary,
    generate_strategy_summary,
    refresh_strategy_summary,
)
from csp_strategy.services.strategy_chat import answer_strategy_question, build_fallback_answer
from csp_strategy.services.projections import calculate_volume_projections

__all__ = [
    'parse_csv_text',
    'split_csv_line',
    'clean_field',
    'TRANSACTION_COLUMN_ALIASES',
    'OPPORTUNITY_COLUMN_ALIASES',
    'match_column',
    'normalize_header',
    'normalize_transaction_row',
    'normalize_opportunity_row',
    'CarrierDirectory',
    'build_carrier_directory',
    'fetch_carrier_directory',
    'OwnershipVocabulary',
    'DEFAULT_OWNERSHIP_VOCABULARY',
    'classify_ownership',
    'TransactionAggregates',
    'aggregate_transactions',
    'parse_cost',
    'build_lane_key',
    'majority_ownership',
    'OpportunityAggregates',
    'calculate_opportunities',
    'NarrativeGenerator',
    'NarrativeResult',
    'TemplateNarrativeGenerator',
    'OpenAINarrativeGenerator',
    'get_narrative_generator',
    'build_data_context',
    'load_event_rows',
    'fetch_event_documents',
    'assemble_summary',
    'build_strategy_summary',
    'persist_strategy_summary',
    'load_persisted_summary',
    'generate_strategy_summary',
    'refresh_strategy_summary',
    'answer_strategy_question',
    'build_fallback_answer',
    'calculate_volume_projections',
]
