"""Context processing subpackage.

Decides which parent messages a new conversation inherits, estimates their
token cost, and defines the boundary to the external summarization service.

Public surface
--------------
- estimate_tokens            — heuristic token count for a message list
- smart_initial_selection    — default custom-mode selection
- truncation_preview         — summary-mode truncation preview
- resolve_inherited_context  — build an inherited-context entry
- validate_branch_data       — structured branch validation
- context_stats              — selection statistics preview
- ExtractiveSummarizer       — offline summarizer
- SummaryRequest / SummaryResponse / Summarizer — collaborator boundary
"""
from __future__ import annotations

from conversation_loom.context.selector import (
    ContextStats,
    TruncationPreview,
    TruncationStrategy,
    TruncationStrategyType,
    ValidationResult,
    build_summary_message,
    context_stats,
    resolve_inherited_context,
    select_context_messages,
    smart_initial_selection,
    truncate_context,
    truncation_preview,
    validate_branch_data,
)
from conversation_loom.context.summarizer import (
    ExtractiveSummarizer,
    Summarizer,
    SummaryMessage,
    SummaryRequest,
    SummaryResponse,
    TokenUsage,
    build_summary_request,
)
from conversation_loom.context.tokens import (
    estimate_message_tokens,
    estimate_text_tokens,
    estimate_tokens,
)

__all__ = [
    "ContextStats",
    "ExtractiveSummarizer",
    "Summarizer",
    "SummaryMessage",
    "SummaryRequest",
    "SummaryResponse",
    "TokenUsage",
    "TruncationPreview",
    "TruncationStrategy",
    "TruncationStrategyType",
    "ValidationResult",
    "build_summary_message",
    "build_summary_request",
    "context_stats",
    "estimate_message_tokens",
    "estimate_text_tokens",
    "estimate_tokens",
    "resolve_inherited_context",
    "select_context_messages",
    "smart_initial_selection",
    "truncate_context",
    "truncation_preview",
    "validate_branch_data",
]
