"""Summarization collaborator boundary.

Summary-mode inheritance embeds text produced by an external summarization
service.  The graph store never calls that service: callers build a
``SummaryRequest``, hand it to any ``Summarizer``, and pass the returned
``summary`` string to the store.  Errors from the service stay with the
caller and leave the graph untouched.

``ExtractiveSummarizer`` is an offline implementation that compresses the
messages with sentence-level TF-IDF scoring weighted by position (earlier
sentences in a message score higher).  It needs no API key and is useful
for tests, demos, and the CLI.

Classes
-------
- SummaryMessage        — role/content pair sent to the collaborator
- TokenUsage            — token accounting reported by the collaborator
- SummaryRequest        — request payload
- SummaryResponse       — response payload
- Summarizer            — protocol every collaborator satisfies
- ExtractiveSummarizer  — offline TF-IDF summarizer with a token budget

Functions
---------
- build_summary_request — request for a node's messages up to an index
"""
from __future__ import annotations

import math
import re
from collections import Counter
from typing import Protocol, runtime_checkable

from pydantic import BaseModel, Field

from conversation_loom.context.tokens import estimate_text_tokens
from conversation_loom.graph.models import ConversationNode, MessageRole


class SummaryMessage(BaseModel):
    """A role/content pair in the summarization request."""

    role: MessageRole
    content: str


class TokenUsage(BaseModel):
    """Token accounting reported by a summarization collaborator."""

    prompt_tokens: int = Field(default=0, ge=0)
    completion_tokens: int = Field(default=0, ge=0)
    total_tokens: int = Field(default=0, ge=0)


class SummaryRequest(BaseModel):
    """Request sent to a summarization collaborator.

    Parameters
    ----------
    messages:
        Messages to summarize, oldest first.
    api_key:
        Provider credential; ignored by offline summarizers.
    model:
        Provider model identifier.
    parent_title:
        Title of the conversation being summarized, for prompt context.
    """

    messages: list[SummaryMessage]
    api_key: str = ""
    model: str = ""
    parent_title: str | None = None


class SummaryResponse(BaseModel):
    """Response returned by a summarization collaborator.

    ``summary`` is opaque text; it is embedded verbatim, never parsed.
    """

    summary: str
    usage: TokenUsage | None = None


@runtime_checkable
class Summarizer(Protocol):
    """Anything that turns a ``SummaryRequest`` into a ``SummaryResponse``."""

    def summarize(self, request: SummaryRequest) -> SummaryResponse:
        ...


def build_summary_request(
    node: ConversationNode,
    message_index: int | None = None,
    *,
    api_key: str = "",
    model: str = "",
) -> SummaryRequest:
    """Build a request covering ``node.content[0..message_index]``.

    Parameters
    ----------
    node:
        The conversation to summarize.
    message_index:
        Inclusive index of the last message to include.  ``None`` covers
        the whole conversation.
    api_key:
        Provider credential forwarded to the collaborator.
    model:
        Provider model identifier.

    Returns
    -------
    SummaryRequest
    """
    messages = node.content if message_index is None else node.content[: message_index + 1]
    return SummaryRequest(
        messages=[SummaryMessage(role=m.role, content=m.content) for m in messages],
        api_key=api_key,
        model=model,
        parent_title=node.metadata.title or None,
    )


# ---------------------------------------------------------------------------
# Text helpers
# ---------------------------------------------------------------------------

_STOP_WORDS: frozenset[str] = frozenset(
    {
        "a", "an", "the", "is", "it", "in", "on", "at", "to", "for",
        "of", "and", "or", "but", "not", "with", "as", "by", "from",
        "this", "that", "was", "are", "be", "been", "have", "has",
        "do", "did", "will", "would", "could", "should", "may", "can",
        "i", "you", "we", "they", "he", "she", "its", "their", "our",
        "so", "if", "then", "just", "also", "about", "there", "here",
        "up", "out", "when", "what", "which", "who", "how", "all",
    }
)


def _tokenize(text: str) -> list[str]:
    """Lowercase, split on non-alphanumeric, remove stop words and short tokens."""
    tokens = re.findall(r"[a-z0-9]+", text.lower())
    return [t for t in tokens if t not in _STOP_WORDS and len(t) > 1]


def _split_sentences(text: str) -> list[str]:
    """Split text into sentences on common sentence-boundary punctuation."""
    raw = re.split(r"(?<=[.!?])\s+", text.strip())
    return [s.strip() for s in raw if s.strip()]


def _term_frequency(tokens: list[str]) -> dict[str, float]:
    if not tokens:
        return {}
    counts = Counter(tokens)
    total = len(tokens)
    return {term: count / total for term, count in counts.items()}


def _compute_idf(documents: list[list[str]]) -> dict[str, float]:
    num_docs = len(documents)
    if num_docs == 0:
        return {}
    document_freq: Counter[str] = Counter()
    for doc_tokens in documents:
        document_freq.update(set(doc_tokens))
    return {
        term: math.log((1 + num_docs) / (1 + df)) + 1
        for term, df in document_freq.items()
    }


def _score_sentence(
    sentence_tokens: list[str],
    idf: dict[str, float],
    position_index: int,
    total_sentences: int,
    position_bias: bool,
) -> float:
    """Score one sentence by TF-IDF sum, optionally weighted by position.

    With ``position_bias`` the first sentence of a message weighs 1.0 and
    the last ~0.5 (linear decay).
    """
    if not sentence_tokens:
        return 0.0

    tf = _term_frequency(sentence_tokens)
    tfidf_sum = sum(tf[term] * idf.get(term, 0.0) for term in tf)

    if not position_bias or total_sentences <= 1:
        return tfidf_sum
    return tfidf_sum * (1.0 - 0.5 * (position_index / (total_sentences - 1)))


# ---------------------------------------------------------------------------
# Offline summarizer
# ---------------------------------------------------------------------------


class ExtractiveSummarizer:
    """Offline extractive summarizer satisfying the ``Summarizer`` protocol.

    Selected sentences are emitted in their original conversation order,
    not by score, so the output reads naturally.

    Parameters
    ----------
    max_tokens:
        Target token budget for the summary.  Default: 300.
    max_sentences_per_message:
        Hard cap on sentences drawn from a single message.  Default: 5.
    position_bias:
        When True (default), earlier sentences in a message weigh more.
    include_roles:
        Roles whose messages are summarized.  Defaults to user and
        assistant; system messages are skipped.
    """

    def __init__(
        self,
        max_tokens: int = 300,
        max_sentences_per_message: int = 5,
        position_bias: bool = True,
        include_roles: frozenset[MessageRole] | None = None,
    ) -> None:
        if max_tokens < 1:
            raise ValueError(f"max_tokens must be >= 1, got {max_tokens!r}.")
        self.max_tokens = max_tokens
        self.max_sentences_per_message = max_sentences_per_message
        self.position_bias = position_bias
        self.include_roles = include_roles or frozenset(
            {MessageRole.USER, MessageRole.ASSISTANT}
        )

    def summarize(self, request: SummaryRequest) -> SummaryResponse:
        """Summarize ``request.messages`` within ``self.max_tokens``.

        Returns
        -------
        SummaryResponse
            The summary with estimated token usage.  The summary is empty
            when no message carries usable text.
        """
        texts = [m.content for m in request.messages if m.role in self.include_roles]
        summary = self.summarize_texts(texts)
        prompt_tokens = sum(estimate_text_tokens(m.content) for m in request.messages)
        completion_tokens = estimate_text_tokens(summary)
        return SummaryResponse(
            summary=summary,
            usage=TokenUsage(
                prompt_tokens=prompt_tokens,
                completion_tokens=completion_tokens,
                total_tokens=prompt_tokens + completion_tokens,
            ),
        )

    def summarize_texts(self, texts: list[str]) -> str:
        """Produce an extractive summary of plain strings."""
        all_sentences: list[tuple[int, int, str]] = []
        per_text_counts: list[int] = []
        for text_idx, text in enumerate(texts):
            sentences = _split_sentences(text)
            per_text_counts.append(len(sentences))
            for sent_idx, sentence in enumerate(sentences):
                all_sentences.append((text_idx, sent_idx, sentence))

        if not all_sentences:
            return ""

        token_lists = [_tokenize(sentence) for _, _, sentence in all_sentences]
        idf = _compute_idf(token_lists)

        scored: list[tuple[float, int, int, str]] = []
        for (text_idx, sent_idx, sentence), tokens in zip(all_sentences, token_lists):
            score = _score_sentence(
                tokens, idf, sent_idx, per_text_counts[text_idx], self.position_bias
            )
            scored.append((score, text_idx, sent_idx, sentence))

        scored.sort(key=lambda item: item[0], reverse=True)

        selected: list[tuple[int, int, str]] = []
        tokens_used = 0
        per_text_selected: dict[int, int] = {}

        for _score, text_idx, sent_idx, sentence in scored:
            if tokens_used >= self.max_tokens:
                break
            taken = per_text_selected.get(text_idx, 0)
            if taken >= self.max_sentences_per_message:
                continue
            cost = max(1, estimate_text_tokens(sentence))
            # Always admit the best sentence, even if it alone exceeds the budget.
            if tokens_used + cost > self.max_tokens and selected:
                continue
            selected.append((text_idx, sent_idx, sentence))
            tokens_used += cost
            per_text_selected[text_idx] = taken + 1

        selected.sort(key=lambda item: (item[0], item[1]))
        return " ".join(sentence for _, _, sentence in selected)
