"""Token budgeting for the tool-calling conversation.

Token counts are estimated from character length only, so budgeting never
needs the model's tokenizer or a network call.
"""

import json
import math
from typing import List, Sequence

from langchain_core.messages import AIMessage, BaseMessage, ToolMessage
from loguru import logger

CHARS_PER_TOKEN = 4
TRUNCATION_MARKER = "\n\n[Content truncated due to size limits...]"


def estimate_tokens(text: str) -> int:
    """Rough token estimate: ~4 characters per token, rounded up."""
    return math.ceil(len(text) / CHARS_PER_TOKEN)


def truncate_content(text: str, max_tokens: int) -> str:
    """Cut ``text`` to fit ``max_tokens`` and mark the cut.

    The result is never longer than the input and stays within the budget,
    marker included, so applying it twice changes nothing.
    """
    if not isinstance(text, str):
        text = str(text)
    if estimate_tokens(text) <= max_tokens:
        return text

    max_chars = max(max_tokens, 0) * CHARS_PER_TOKEN
    if max_chars <= len(TRUNCATION_MARKER):
        return text[:max_chars]
    return text[: max_chars - len(TRUNCATION_MARKER)] + TRUNCATION_MARKER


def message_text(message: BaseMessage) -> str:
    """Everything in a message that is sent to the model, as text."""
    content = message.content if isinstance(message.content, str) else json.dumps(message.content, default=str)
    if isinstance(message, AIMessage) and message.tool_calls:
        content += json.dumps([[call["name"], call["args"]] for call in message.tool_calls], default=str)
    return content


def estimate_conversation(messages: Sequence[BaseMessage]) -> int:
    return sum(estimate_tokens(message_text(message)) for message in messages)


def budget_conversation(messages: List[BaseMessage], ceiling: int, keep_recent: int = 5) -> List[BaseMessage]:
    """Drop interior history when the conversation exceeds ``ceiling``.

    Keeps the first message (the system prompt) and the last ``keep_recent``
    messages. If the kept tail would open with tool results whose assistant
    message was cut, the tail is widened back to that assistant message so
    every tool result still follows the call it answers.
    """
    total = estimate_conversation(messages)
    if total <= ceiling or len(messages) <= keep_recent + 1:
        return messages

    start = len(messages) - keep_recent
    while start > 1 and isinstance(messages[start], ToolMessage):
        start -= 1

    pruned = [messages[0]] + messages[start:]
    if len(pruned) < len(messages):
        logger.warning(
            f"Message context is large ({total} tokens), dropped {len(messages) - len(pruned)} older messages"
        )
    return pruned
