"""
Tool contracts and the tool registry.

A tool is a :class:`BaseTool` subclass with a unique ``name``, a natural-language ``description``,
a JSON-schema ``parameters`` object and an :meth:`BaseTool.execute` method that always returns a
:class:`~dbagent.core.schema.ToolOutcome`.  The :class:`ToolRegistry` maps names to tools and keeps
registration order, which is also the order advertised to the model.
"""

import copy
import logging
from abc import (
    ABC,
    abstractmethod,
)
from typing import (
    TYPE_CHECKING,
    Any,
    ClassVar,
    Dict,
    List,
    Mapping,
    TypedDict,
)

from dbagent.core.schema import ToolOutcome

if TYPE_CHECKING:  # pragma: no cover
    from dbagent.db.mongo import MongoStore

logger = logging.getLogger(__name__)


class DuplicateToolError(ValueError):
    """Raised when a tool name is registered twice."""


class ToolNotFoundError(KeyError):
    """Raised by :meth:`ToolRegistry.get` for names that were never registered."""


class ToolInfo(TypedDict):
    """
    Public description of a tool
    """

    name: str
    description: str
    parameters: Mapping[str, Any]


class BaseTool(ABC):
    """Abstract tool: declarative contract plus an executable action."""

    name: ClassVar[str]
    description: ClassVar[str]
    parameters: ClassVar[Mapping[str, Any]]

    @abstractmethod
    def execute(self, params: Mapping[str, Any]) -> ToolOutcome:
        """Run the tool.  Problems are reported in the returned outcome, not raised."""

    def info(self) -> ToolInfo:
        return ToolInfo(
            name=self.name,
            description=self.description,
            parameters=copy.deepcopy(dict(self.parameters)),
        )

    def to_function_spec(self) -> Dict[str, Any]:
        """Describe the tool in the ``{"type": "function", ...}`` form completion APIs expect."""
        return {
            "type": "function",
            "function": {
                "name": self.name,
                "description": self.description,
                "parameters": copy.deepcopy(dict(self.parameters)),
            },
        }


class ToolRegistry:
    """Name -> tool mapping that preserves registration order."""

    def __init__(self) -> None:
        self._tools: Dict[str, BaseTool] = {}

    def __contains__(self, name: object) -> bool:
        return name in self._tools

    def __len__(self) -> int:
        return len(self._tools)

    def register(self, tool: BaseTool) -> BaseTool:
        """
        Register *tool* under its ``name``.

        Raises
        ------
        DuplicateToolError
            If a tool with the same name is already registered.
        """
        if tool.name in self._tools:
            raise DuplicateToolError(f"Tool '{tool.name}' is already registered.")
        logger.debug("Registering tool '%s'", tool.name)
        self._tools[tool.name] = tool
        return tool

    def get(self, name: str) -> BaseTool:
        try:
            return self._tools[name]
        except KeyError:
            raise ToolNotFoundError(name) from None

    def list(self) -> List[BaseTool]:
        return list(self._tools.values())

    def names(self) -> List[str]:
        return list(self._tools)

    def function_specs(self) -> List[Dict[str, Any]]:
        return [tool.to_function_spec() for tool in self._tools.values()]

    def info(self) -> Dict[str, ToolInfo]:
        return {name: tool.info() for name, tool in self._tools.items()}


def build_store_registry(store: "MongoStore") -> ToolRegistry:
    """Return a registry holding the four document-store tools bound to *store*."""
    # pylint: disable=import-outside-toplevel
    from dbagent.tools.delete import DeleteTool
    from dbagent.tools.insert import InsertTool
    from dbagent.tools.query import QueryTool
    from dbagent.tools.update import UpdateTool

    registry = ToolRegistry()
    for tool_cls in (QueryTool, InsertTool, UpdateTool, DeleteTool):
        registry.register(tool_cls(store))
    return registry
