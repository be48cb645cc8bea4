"""Unit tests for conversation_loom.context.summarizer."""
from __future__ import annotations

import re

import pytest

from conversation_loom.context.summarizer import (
    ExtractiveSummarizer,
    Summarizer,
    SummaryMessage,
    SummaryRequest,
    SummaryResponse,
    build_summary_request,
)
from conversation_loom.graph.models import ConversationNode, Message, MessageRole, NodeMetadata


@pytest.fixture()
def node() -> ConversationNode:
    content = [
        Message(role=MessageRole.USER, content="How do I parse YAML in Python? I need config files."),
        Message(
            role=MessageRole.ASSISTANT,
            content="Use PyYAML with safe_load. It returns plain dicts and lists.",
        ),
        Message(role=MessageRole.SYSTEM, content="Internal routing note."),
        Message(role=MessageRole.USER, content="What about writing YAML back out?"),
    ]
    return ConversationNode(
        content=content,
        metadata=NodeMetadata(title="YAML help", message_count=len(content)),
    )


class TestBuildSummaryRequest:
    def test_whole_conversation(self, node: ConversationNode) -> None:
        request = build_summary_request(node, api_key="k", model="m")
        assert len(request.messages) == 4
        assert request.api_key == "k"
        assert request.model == "m"
        assert request.parent_title == "YAML help"

    def test_limited_to_index(self, node: ConversationNode) -> None:
        request = build_summary_request(node, 1)
        assert [m.role for m in request.messages] == [MessageRole.USER, MessageRole.ASSISTANT]

    def test_untitled_node_has_no_parent_title(self) -> None:
        request = build_summary_request(ConversationNode())
        assert request.parent_title is None
        assert request.messages == []


class TestExtractiveSummarizer:
    def test_satisfies_protocol(self) -> None:
        assert isinstance(ExtractiveSummarizer(), Summarizer)

    def test_rejects_non_positive_budget(self) -> None:
        with pytest.raises(ValueError):
            ExtractiveSummarizer(max_tokens=0)

    def test_summary_is_drawn_from_source(self, node: ConversationNode) -> None:
        response = ExtractiveSummarizer().summarize(build_summary_request(node))
        assert isinstance(response, SummaryResponse)
        assert response.summary
        for sentence in re.split(r"(?<=[.!?])\s+", response.summary):
            assert any(sentence in m.content for m in node.content)

    def test_skips_system_messages(self, node: ConversationNode) -> None:
        response = ExtractiveSummarizer().summarize(build_summary_request(node))
        assert "routing" not in response.summary

    def test_reports_usage(self, node: ConversationNode) -> None:
        response = ExtractiveSummarizer().summarize(build_summary_request(node))
        assert response.usage is not None
        assert response.usage.total_tokens == (
            response.usage.prompt_tokens + response.usage.completion_tokens
        )

    def test_empty_request_gives_empty_summary(self) -> None:
        response = ExtractiveSummarizer().summarize(SummaryRequest(messages=[]))
        assert response.summary == ""

    def test_budget_limits_length(self) -> None:
        long_text = " ".join(f"Sentence number {i} talks about topic {i}." for i in range(50))
        request = SummaryRequest(
            messages=[SummaryMessage(role=MessageRole.USER, content=long_text)]
        )
        short = ExtractiveSummarizer(max_tokens=20, max_sentences_per_message=50).summarize(request)
        longer = ExtractiveSummarizer(max_tokens=200, max_sentences_per_message=50).summarize(request)
        assert len(short.summary) < len(longer.summary)

    def test_keeps_original_sentence_order(self) -> None:
        text = "Alpha handles parsing. Beta handles storage. Gamma handles rendering."
        summary = ExtractiveSummarizer(max_tokens=500).summarize_texts([text])
        assert summary == text

    def test_per_message_cap(self) -> None:
        text = "One fact here. Two fact here. Three fact here. Four fact here."
        summary = ExtractiveSummarizer(max_tokens=500, max_sentences_per_message=2).summarize_texts(
            [text]
        )
        assert summary.count(".") == 2
