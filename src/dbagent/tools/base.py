"""
Shared plumbing for the document-store tools.

:class:`StoreTool` runs the common pre-execution checks (store connected, collection named,
operation supported) and turns every validation problem or store error into a failed
:class:`~dbagent.core.schema.ToolOutcome`.  Subclasses implement :meth:`StoreTool.run`.
"""

import logging
from abc import abstractmethod
from typing import (
    Any,
    ClassVar,
    FrozenSet,
    List,
    Mapping,
    Optional,
)

from pymongo.collection import Collection
from pymongo.errors import PyMongoError

from dbagent.core.schema import (
    ErrorKind,
    ToolOutcome,
)
from dbagent.db.mongo import (
    MongoStore,
    StoreNotConnectedError,
)
from dbagent.tools import BaseTool

logger = logging.getLogger(__name__)

OPERATOR_PREFIX = "$"


class ToolValidationError(ValueError):
    """Arguments failed validation; nothing was sent to the store."""

    kind = ErrorKind.VALIDATION


class GuardError(ToolValidationError):
    """A safety limit tripped; nothing was written."""

    kind = ErrorKind.GUARD


def require_mapping(value: Any, label: str) -> Mapping[str, Any]:
    if not isinstance(value, Mapping):
        raise ToolValidationError(f"{label} must be an object")
    return value


def require_filter(value: Any, action: str) -> Mapping[str, Any]:
    """Filters are mandatory for writes; an empty one would touch the whole collection."""
    if value is None or (isinstance(value, Mapping) and not value):
        raise ToolValidationError(
            f"Filter is required and cannot be empty for {action} operations"
        )
    return require_mapping(value, "Filter")


def operator_keys(document: Mapping[str, Any]) -> List[str]:
    return [key for key in document if str(key).startswith(OPERATOR_PREFIX)]


def _label(params: Any, key: str) -> Optional[str]:
    value = params.get(key) if isinstance(params, Mapping) else None
    return value if isinstance(value, str) else None


def snapshot(collection: Collection, query: Mapping[str, Any], limit: int) -> List[Any]:
    """
    Fetch up to *limit* documents matching *query*.

    The result is best-effort: another writer may change the collection between this read and
    the write that follows it.
    """
    return list(collection.find(query).limit(limit))


class StoreTool(BaseTool):
    """Base class for tools that operate on one collection of a :class:`MongoStore`."""

    operations: ClassVar[FrozenSet[str]]

    def __init__(self, store: MongoStore):
        self.store = store

    def execute(self, params: Mapping[str, Any]) -> ToolOutcome:
        operation = _label(params, "operation")
        collection = _label(params, "collection")
        try:
            params = require_mapping(params, "Tool arguments")
            if collection is None or not collection.strip():
                raise ToolValidationError("collection must be a non-empty string")
            if operation is None or operation not in self.operations:
                raise ToolValidationError(
                    f"Unsupported operation: {operation}. "
                    f"Expected one of: {', '.join(sorted(self.operations))}"
                )
            logger.info("%s: %s on '%s'", self.name, operation, collection)
            logger.debug("%s arguments: %s", self.name, params)
            return self.run(operation, collection, params)
        except ToolValidationError as exc:
            logger.warning("%s rejected %s on '%s': %s", self.name, operation, collection, exc)
            return ToolOutcome.fail(
                str(exc), kind=exc.kind, operation=operation, collection=collection
            )
        except StoreNotConnectedError as exc:
            logger.error("%s: %s", self.name, exc)
            return ToolOutcome.fail(
                str(exc), kind=ErrorKind.STORE, operation=operation, collection=collection
            )
        except PyMongoError as exc:
            logger.error(
                "%s: store error during %s on '%s': %s", self.name, operation, collection, exc
            )
            return ToolOutcome.fail(
                str(exc), kind=ErrorKind.STORE, operation=operation, collection=collection
            )

    def collection(self, name: str) -> Collection:
        return self.store.get_collection(name)

    @abstractmethod
    def run(self, operation: str, collection: str, params: Mapping[str, Any]) -> ToolOutcome:
        """Validate operation-specific arguments, then talk to the store."""
