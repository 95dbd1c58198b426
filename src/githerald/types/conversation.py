"""Types exchanged between the tool-calling loop and the tool host."""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional


@dataclass(frozen=True)
class ToolCallRequest:
    """A single tool call emitted by the reasoning service.

    ``parse_error`` is set when the serialized argument payload could not be
    decoded; such a call is still answered, with an error result.
    """

    id: str
    name: str
    arguments: Dict[str, Any] = field(default_factory=dict)
    parse_error: Optional[str] = None


@dataclass(frozen=True)
class ContentSegment:
    """One ordered piece of a tool result."""

    kind: str
    text: str


@dataclass(frozen=True)
class ToolResult:
    """Uniform result envelope returned by the tool host adapter."""

    segments: List[ContentSegment]
    is_error: bool = False

    @classmethod
    def error(cls, message: str) -> "ToolResult":
        """Build an error envelope carrying a single text segment."""
        return cls(segments=[ContentSegment(kind="text", text=message)], is_error=True)

    def joined_text(self) -> str:
        """Join the text of all segments with newlines."""
        return "\n".join(segment.text for segment in self.segments if segment.text)
