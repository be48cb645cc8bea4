"""Token estimation for conversation messages.

A heuristic ratio, not a real tokenizer: one token per ~4 characters,
rounded up per message.  Deterministic and monotonic in both message count
and total character length.
"""
from __future__ import annotations

import math
from collections.abc import Iterable

from conversation_loom.graph.models import Message

CHARS_PER_TOKEN = 4


def estimate_text_tokens(text: str) -> int:
    """Rough token estimate for a raw string."""
    return math.ceil(len(text) / CHARS_PER_TOKEN)


def estimate_message_tokens(message: Message) -> int:
    """Estimate the token count of a single message."""
    return estimate_text_tokens(message.content)


def estimate_tokens(messages: Iterable[Message]) -> int:
    """Estimate the total token count of a message list.

    Parameters
    ----------
    messages:
        Messages to measure.

    Returns
    -------
    int
        Sum of per-message estimates; 0 for an empty list.
    """
    return sum(estimate_message_tokens(message) for message in messages)
