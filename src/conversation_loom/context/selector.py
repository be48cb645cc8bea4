"""Context selection for branch and merge inheritance.

Decides which parent messages a new conversation inherits under each
inheritance mode, previews the effect of summary truncation, and validates
branch input before any graph mutation happens.

Every function here is pure: results are recomputed on demand from the
arguments, never cached or pushed.

Classes
-------
- TruncationStrategyType  — enum: RECENT, BOUNDARY, IMPORTANT
- TruncationStrategy      — strategy type plus message cap
- TruncationPreview       — truncated messages with removal statistics
- ValidationResult        — structured outcome of branch validation
- ContextStats            — message/token statistics for a selection preview

Functions
---------
- truncate_context            — apply a truncation strategy
- truncation_preview          — truncated slice plus tokens saved
- smart_initial_selection     — default pre-checked ids for custom mode
- select_context_messages     — messages chosen by a mode over a slice
- build_summary_message       — synthetic system message wrapping a summary
- resolve_inherited_context   — build an ``InheritedContextEntry``
- validate_branch_data        — structured validation, never raises
- context_stats               — stats preview for a mode and selection
"""
from __future__ import annotations

from collections.abc import Collection, Sequence
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum

from pydantic import BaseModel, Field

from conversation_loom.context.tokens import estimate_tokens
from conversation_loom.errors import (
    EmptySelectionError,
    InvalidMessageIndexError,
    MissingSummaryError,
)
from conversation_loom.graph.models import (
    InheritanceMode,
    InheritedContextEntry,
    Message,
    MessageRole,
)

CODE_FENCE = "```"
DEFAULT_RECENT_COUNT = 10
DEFAULT_LARGE_CONTEXT_WARNING = 50
SUMMARY_HEADER = "Summary of previous conversation ({count} messages):\n\n"


# ---------------------------------------------------------------------------
# Truncation
# ---------------------------------------------------------------------------


class TruncationStrategyType(str, Enum):
    """Ordering bias used when trimming a message list."""

    RECENT = "recent"
    BOUNDARY = "boundary"
    IMPORTANT = "important"


class TruncationStrategy(BaseModel):
    """How to trim a message list for summary-mode previews.

    Parameters
    ----------
    type:
        Ordering bias (see ``TruncationStrategyType``).
    max_messages:
        Target number of messages to keep.
    """

    type: TruncationStrategyType = TruncationStrategyType.BOUNDARY
    max_messages: int = Field(default=10, ge=1)

    model_config = {"frozen": True}


@dataclass(frozen=True)
class TruncationPreview:
    """Result of previewing a truncation.

    Attributes
    ----------
    truncated:
        Messages that survive truncation, in original order.
    removed:
        Number of messages dropped.
    tokens_saved:
        Estimated tokens saved versus including every message.
    """

    truncated: list[Message]
    removed: int
    tokens_saved: int


def _truncate_recent(messages: Sequence[Message], max_messages: int) -> list[Message]:
    if len(messages) <= max_messages:
        return list(messages)
    return list(messages[-max_messages:])


def _truncate_boundary(messages: Sequence[Message], max_messages: int) -> list[Message]:
    """Cut at the topic boundary closest to keeping ``max_messages``.

    A boundary is an assistant -> user transition, so the kept slice always
    opens with the user turn that started a new exchange.
    """
    if len(messages) <= max_messages:
        return list(messages)

    boundaries = [0]
    for index in range(1, len(messages)):
        if (
            messages[index - 1].role == MessageRole.ASSISTANT
            and messages[index].role == MessageRole.USER
        ):
            boundaries.append(index)

    target = len(messages) - max_messages
    # Ties resolve to the earlier boundary (keeps more context).
    closest = min(boundaries, key=lambda b: abs(b - target))
    return list(messages[closest:])


def _truncate_important(messages: Sequence[Message], max_messages: int) -> list[Message]:
    """Keep system messages, the opening user turn, code, then recency."""
    if len(messages) <= max_messages:
        return list(messages)

    kept: list[Message] = []
    used: set[str] = set()

    for message in messages:
        if message.role == MessageRole.SYSTEM:
            kept.append(message)
            used.add(message.id)

    first_user = next((m for m in messages if m.role == MessageRole.USER), None)
    if first_user is not None and first_user.id not in used:
        kept.append(first_user)
        used.add(first_user.id)

    code_messages = [m for m in messages if m.has_code_block and m.id not in used]
    remaining_slots = max(0, max_messages - len(kept))
    code_slots = min(remaining_slots // 2, len(code_messages))
    if code_slots:
        for message in code_messages[-code_slots:]:
            kept.append(message)
            used.add(message.id)

    recent_count = max(0, max_messages - len(kept))
    if recent_count:
        leftovers = [m for m in messages if m.id not in used]
        for message in leftovers[-recent_count:]:
            kept.append(message)
            used.add(message.id)

    order = {message.id: index for index, message in enumerate(messages)}
    kept.sort(key=lambda m: order[m.id])
    return kept


def truncate_context(
    messages: Sequence[Message], strategy: TruncationStrategy
) -> list[Message]:
    """Apply ``strategy`` to ``messages`` and return the surviving messages."""
    if strategy.type == TruncationStrategyType.BOUNDARY:
        return _truncate_boundary(messages, strategy.max_messages)
    if strategy.type == TruncationStrategyType.IMPORTANT:
        return _truncate_important(messages, strategy.max_messages)
    return _truncate_recent(messages, strategy.max_messages)


def truncation_preview(
    messages: Sequence[Message], strategy: TruncationStrategy
) -> TruncationPreview:
    """Preview which messages survive truncation and what it saves.

    Parameters
    ----------
    messages:
        Full message list.
    strategy:
        Truncation strategy to apply.

    Returns
    -------
    TruncationPreview
        Surviving messages, removed count, and estimated tokens saved.
    """
    truncated = truncate_context(messages, strategy)
    return TruncationPreview(
        truncated=truncated,
        removed=len(messages) - len(truncated),
        tokens_saved=estimate_tokens(messages) - estimate_tokens(truncated),
    )


# ---------------------------------------------------------------------------
# Selection
# ---------------------------------------------------------------------------


def smart_initial_selection(
    messages: Sequence[Message], recent_count: int = DEFAULT_RECENT_COUNT
) -> set[str]:
    """Return the default pre-checked message ids for custom mode.

    The first message (usually the framing request), the last
    ``recent_count`` messages, and every message carrying a code fence.
    """
    if not messages:
        return set()

    selected = {messages[0].id}
    start = max(1, len(messages) - recent_count)
    selected.update(message.id for message in messages[start:])
    selected.update(message.id for message in messages if message.has_code_block)
    return selected


def _slice_to_index(messages: Sequence[Message], message_index: int) -> list[Message]:
    return list(messages[: message_index + 1])


def select_context_messages(
    messages: Sequence[Message],
    mode: InheritanceMode,
    custom_ids: Collection[str] | None = None,
    truncation: TruncationStrategy | None = None,
) -> list[Message]:
    """Return the messages ``mode`` would carry over from ``messages``.

    Summary mode returns the truncated slice the summarizer should see.
    Custom mode preserves original order regardless of the order of
    ``custom_ids``.
    """
    if mode == InheritanceMode.SUMMARY:
        return truncate_context(messages, truncation or TruncationStrategy())
    if mode == InheritanceMode.CUSTOM:
        wanted = set(custom_ids or ())
        return [message for message in messages if message.id in wanted]
    return list(messages)


def build_summary_message(summary_text: str, original_message_count: int) -> Message:
    """Wrap opaque summary text in a synthetic system message."""
    return Message(
        role=MessageRole.SYSTEM,
        content=SUMMARY_HEADER.format(count=original_message_count) + summary_text,
        metadata={"is_summary": True, "original_message_count": original_message_count},
    )


def resolve_inherited_context(
    mode: InheritanceMode,
    source_messages: Sequence[Message],
    message_index: int,
    custom_ids: Collection[str] | None = None,
    summary_text: str | None = None,
    *,
    source_id: str | None = None,
) -> InheritedContextEntry:
    """Build the inherited-context entry a child receives from one parent.

    Parameters
    ----------
    mode:
        Inheritance mode.
    source_messages:
        The parent's own content (never its inherited context).
    message_index:
        Inclusive index of the last message that may be inherited.
    custom_ids:
        Selected message ids for custom mode.
    summary_text:
        Collaborator-produced summary for summary mode.
    source_id:
        Parent id, used only in error messages.

    Returns
    -------
    InheritedContextEntry

    Raises
    ------
    InvalidMessageIndexError
        If ``message_index`` is outside ``source_messages``.
    MissingSummaryError
        If ``mode`` is summary and ``summary_text`` is missing or blank.
    EmptySelectionError
        If ``mode`` is custom and ``custom_ids`` is empty.
    """
    if not 0 <= message_index < len(source_messages):
        raise InvalidMessageIndexError(
            source_id or "<source>", message_index, len(source_messages)
        )

    window = _slice_to_index(source_messages, message_index)

    if mode == InheritanceMode.SUMMARY:
        if summary_text is None or not summary_text.strip():
            raise MissingSummaryError(source_id)
        messages = [build_summary_message(summary_text, len(window))]
    elif mode == InheritanceMode.CUSTOM:
        if not custom_ids:
            raise EmptySelectionError()
        messages = select_context_messages(window, InheritanceMode.CUSTOM, custom_ids)
    else:
        messages = window

    return InheritedContextEntry(
        mode=mode,
        messages=messages,
        timestamp=datetime.now(timezone.utc),
        total_parent_messages=len(source_messages),
    )


# ---------------------------------------------------------------------------
# Validation and previews
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ValidationResult:
    """Outcome of validating branch input.

    Attributes
    ----------
    valid:
        False when the branch must not be created.
    error:
        Reason the input is invalid.
    warning:
        Non-blocking advice for the user.
    """

    valid: bool
    error: str | None = None
    warning: str | None = None


def validate_branch_data(
    mode: InheritanceMode,
    custom_ids: Collection[str] | None,
    messages: Sequence[Message],
    inherited: Sequence[Message] | None = None,
    *,
    large_context_warning: int = DEFAULT_LARGE_CONTEXT_WARNING,
    summary_truncation: TruncationStrategy | None = None,
) -> ValidationResult:
    """Validate branch input without raising.

    Parameters
    ----------
    mode:
        Requested inheritance mode.
    custom_ids:
        Selected ids when ``mode`` is custom.
    messages:
        Source messages the branch would draw from.
    inherited:
        Context the source itself inherited, if any.
    large_context_warning:
        Selections above this many messages produce a warning.
    summary_truncation:
        Strategy used to preview summary-mode truncation.

    Returns
    -------
    ValidationResult
    """
    if not messages and not inherited:
        return ValidationResult(
            valid=False,
            error="Cannot branch from a conversation with no messages or inherited context.",
        )

    if mode == InheritanceMode.CUSTOM:
        selected = len(set(custom_ids or ()))
        if selected == 0:
            return ValidationResult(
                valid=False,
                error="Custom mode requires at least one message to be selected.",
            )
        if selected > large_context_warning:
            return ValidationResult(
                valid=True,
                warning=f"{selected} messages selected; large contexts may be slow and costly.",
            )
        if selected == 1:
            return ValidationResult(
                valid=True,
                warning="Only one message selected. Consider selecting more for better context.",
            )
        return ValidationResult(valid=True)

    if mode == InheritanceMode.SUMMARY:
        preview = truncation_preview(messages, summary_truncation or TruncationStrategy())
        if preview.removed > 0:
            return ValidationResult(
                valid=True,
                warning=(
                    f"Summary mode will exclude {preview.removed} messages "
                    f"(~{preview.tokens_saved} tokens)."
                ),
            )
        return ValidationResult(valid=True)

    if len(messages) > large_context_warning:
        return ValidationResult(
            valid=True,
            warning=f"Inheriting {len(messages)} messages; large contexts may be slow and costly.",
        )
    return ValidationResult(valid=True)


@dataclass(frozen=True)
class ContextStats:
    """Message and token statistics for a selection preview."""

    message_count: int
    token_count: int
    total_messages: int
    total_tokens: int

    @property
    def token_ratio(self) -> float:
        """Fraction of the full slice's tokens that would be inherited."""
        if self.total_tokens == 0:
            return 0.0
        return self.token_count / self.total_tokens


def context_stats(
    mode: InheritanceMode,
    messages: Sequence[Message],
    message_index: int | None = None,
    custom_ids: Collection[str] | None = None,
    truncation: TruncationStrategy | None = None,
) -> ContextStats:
    """Compute preview statistics for inheriting ``messages`` under ``mode``.

    ``message_index`` limits the slice (inclusive); ``None`` means the
    whole list.  In summary mode the statistics describe the truncated
    slice that would be handed to the summarizer.
    """
    window = (
        list(messages)
        if message_index is None
        else _slice_to_index(messages, message_index)
    )
    chosen = select_context_messages(window, mode, custom_ids, truncation)
    return ContextStats(
        message_count=len(chosen),
        token_count=estimate_tokens(chosen),
        total_messages=len(window),
        total_tokens=estimate_tokens(window),
    )
