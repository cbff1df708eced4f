"""消息合批 — 按用户防抖合并连发消息。"""

from relaybot_sdk.batching.batcher import Batch, MessageBatcher, merge_messages

__all__ = ["Batch", "MessageBatcher", "merge_messages"]
