"""Near-duplicate detection between two messages."""

from __future__ import annotations

from relaybot_sdk.memory.types import Message

SIMILARITY_THRESHOLD = 0.9


def jaccard_similarity(a: str, b: str) -> float:
    """Word-set Jaccard similarity; 0.0 when both sides have no words."""
    words_a = set(a.split())
    words_b = set(b.split())
    union = words_a | words_b
    if not union:
        return 0.0
    return len(words_a & words_b) / len(union)


def messages_similar(a: Message, b: Message) -> bool:
    """True if *a* and *b* share a role and are (near-)identical."""
    if a.role != b.role:
        return False

    content_a = a.content.lower().strip()
    content_b = b.content.lower().strip()
    if content_a == content_b:
        return True

    return jaccard_similarity(content_a, content_b) > SIMILARITY_THRESHOLD
