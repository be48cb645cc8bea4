#!/usr/bin/env python3
"""Example: Quickstart — conversation-loom

Minimal working example: start a conversation, branch it two ways,
merge the branches, and undo a mistake.

Usage:
    python examples/01_quickstart.py

Requirements:
    pip install conversation-loom
"""
from __future__ import annotations

import conversation_loom
from conversation_loom import (
    ConversationGraph,
    ExtractiveSummarizer,
    InheritanceMode,
    build_summary_request,
)


def main() -> None:
    print(f"conversation-loom version: {conversation_loom.__version__}")

    # Step 1: Start a root conversation
    graph = ConversationGraph()
    root = graph.create_root(title="Weekend project")
    graph.append_message(root.id, "user", "I want to build a small web scraper.")
    graph.append_message(root.id, "assistant", "Python with httpx and selectolax works well.")
    graph.append_message(root.id, "user", "Should results go into SQLite or CSV?")
    graph.append_message(root.id, "assistant", "SQLite if you will query them later.")
    print(f"Root '{root.metadata.title}': {len(graph.get_node(root.id).content)} messages")

    # Step 2: Branch with full history, and with a summary
    full = graph.create_branch(root.id, 1, branch_reason="Scraper code")
    summary = ExtractiveSummarizer(max_tokens=60).summarize(
        build_summary_request(graph.get_node(root.id), 3)
    )
    short = graph.create_branch(
        root.id,
        3,
        InheritanceMode.SUMMARY,
        summary_text=summary.summary,
        branch_reason="Storage design",
    )
    graph.append_message(full.id, "user", "Show me the fetch loop.")
    graph.append_message(short.id, "user", "Design the SQLite schema.")
    print(f"Branches: {full.metadata.title!r}, {short.metadata.title!r}")

    # Step 3: Merge both threads into a synthesis conversation
    merged = graph.create_merge_node([full.id, short.id], synthesis_prompt="Put it together")
    print(f"\nMerge node {merged.id[:8]} sees:")
    for message in graph.get_conversation_messages(merged.id):
        print(f"  [{message['role']}] {message['content'][:60]}")

    # Step 4: Delete a branch by mistake, then undo
    graph.delete_conversation(full.id)
    print(f"\nAfter delete: {len(graph)} nodes")
    graph.undo()
    print(f"After undo:   {len(graph)} nodes")
    graph.check_integrity()


if __name__ == "__main__":
    main()
