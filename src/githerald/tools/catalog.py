"""Declarative mapping from abstract tool names to concrete capability-host tools.

The reasoning service and the discovery code only ever see abstract names.
Which concrete tool (and which fixed arguments) serve an abstract name depends
on the tool host version, so that knowledge lives here and nowhere else.
"""

from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple

ArgumentTransform = Callable[[Dict[str, Any]], Dict[str, Any]]

GITHUB_MCP_SCHEMA = "github-mcp-server/pull_request_read"


class ToolMappingError(Exception):
    """Raised for unknown abstract tools or bindings the host cannot serve."""


@dataclass(frozen=True)
class ToolBinding:
    """How one abstract tool is served by the tool host."""

    abstract_name: str
    concrete_name: str
    fixed_arguments: Dict[str, Any] = field(default_factory=dict)
    transform: Optional[ArgumentTransform] = None
    bulk: bool = False  # diffs and file listings

    def apply(self, arguments: Dict[str, Any]) -> Dict[str, Any]:
        """Return the concrete argument map for this binding."""
        adjusted = dict(arguments)
        if self.transform is not None:
            adjusted = self.transform(adjusted)
        adjusted.update(self.fixed_arguments)
        return adjusted


class ToolCatalog:
    """Registry of tool bindings, keyed by abstract name."""

    def __init__(self, bindings: Iterable[ToolBinding] = (), schema: str = GITHUB_MCP_SCHEMA):
        self.schema = schema
        self._bindings: Dict[str, ToolBinding] = {}
        for binding in bindings:
            self.register(binding)

    def register(self, binding: ToolBinding) -> None:
        """Add or replace the binding for ``binding.abstract_name``."""
        self._bindings[binding.abstract_name] = binding

    def binding(self, abstract_name: str) -> ToolBinding:
        try:
            return self._bindings[abstract_name]
        except KeyError:
            raise ToolMappingError(f"Unknown tool: {abstract_name}") from None

    def resolve(self, abstract_name: str, arguments: Dict[str, Any]) -> Tuple[str, Dict[str, Any]]:
        """Translate an abstract call into ``(concrete_name, concrete_arguments)``."""
        binding = self.binding(abstract_name)
        return binding.concrete_name, binding.apply(arguments)

    def is_bulk(self, abstract_name: str) -> bool:
        binding = self._bindings.get(abstract_name)
        return binding.bulk if binding else False

    def abstract_names(self) -> List[str]:
        return list(self._bindings)

    def concrete_names(self) -> List[str]:
        return sorted({binding.concrete_name for binding in self._bindings.values()})

    def validate(self, available: Iterable[str]) -> None:
        """Fail fast when the host does not advertise a tool this catalog needs."""
        offered = set(available)
        missing = [name for name in self.concrete_names() if name not in offered]
        if missing:
            raise ToolMappingError(
                f"Tool host does not provide {', '.join(missing)} required by schema {self.schema}"
            )


def default_catalog() -> ToolCatalog:
    """Bindings for the GitHub MCP server."""
    return ToolCatalog(
        [
            ToolBinding("list_pull_requests", "list_pull_requests"),
            ToolBinding("get_pull_request", "pull_request_read", {"method": "get"}),
            ToolBinding("get_pull_request_diff", "pull_request_read", {"method": "get_diff"}, bulk=True),
            ToolBinding("get_pull_request_files", "pull_request_read", {"method": "get_files"}, bulk=True),
            ToolBinding("list_commits", "list_commits"),
            ToolBinding("search_repositories", "search_repositories"),
        ]
    )
