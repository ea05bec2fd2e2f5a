"""Delete tool: deleteOne and deleteMany, behind an explicit confirmation and a safe mode."""

import logging
from typing import (
    Any,
    Mapping,
)

from dbagent.core.schema import ToolOutcome
from dbagent.tools.base import (
    GuardError,
    StoreTool,
    ToolValidationError,
    require_mapping,
    snapshot,
)

logger = logging.getLogger(__name__)

SAFE_MODE_MAX = 10
SNAPSHOT_LIMIT = 100


class DeleteTool(StoreTool):
    """Remove documents matching a non-empty filter once the caller confirms."""

    name = "delete_mongodb_data"
    description = (
        "Delete documents from MongoDB collections. Can delete single documents or multiple "
        "documents matching criteria. Requires confirmDeletion: true. Use with caution."
    )
    parameters = {
        "type": "object",
        "properties": {
            "collection": {
                "type": "string",
                "description": (
                    "The MongoDB collection to delete data from (e.g., users, products, orders)"
                ),
            },
            "operation": {
                "type": "string",
                "enum": ["deleteOne", "deleteMany"],
                "description": "The delete operation to perform",
            },
            "filter": {
                "type": "object",
                "description": (
                    "Query filter to specify which documents to delete (MongoDB query syntax). "
                    "Must not be empty."
                ),
            },
            "confirmDeletion": {
                "type": "boolean",
                "description": "Safety confirmation that deletion is intended",
                "default": False,
            },
            "safeMode": {
                "type": "boolean",
                "description": (
                    f"If true, prevents deletion of more than {SAFE_MODE_MAX} documents at once"
                ),
                "default": True,
            },
        },
        "required": ["collection", "operation", "filter", "confirmDeletion"],
    }
    operations = frozenset(parameters["properties"]["operation"]["enum"])

    def run(self, operation: str, collection: str, params: Mapping[str, Any]) -> ToolOutcome:
        if params.get("confirmDeletion") is not True:
            raise ToolValidationError(
                "Deletion requires explicit confirmation. Set confirmDeletion: true"
            )
        query = params.get("filter")
        if query is None or query == {}:
            raise ToolValidationError(
                "Empty filter not allowed. To delete all documents, specify a filter like "
                "{_id: {$exists: true}}"
            )
        query = require_mapping(query, "Filter")
        safe_mode = params.get("safeMode", True)
        if not isinstance(safe_mode, bool):
            raise ToolValidationError("safeMode must be a boolean")

        coll = self.collection(collection)
        if operation == "deleteMany" and safe_mode:
            to_delete = coll.count_documents(query)
            if to_delete > SAFE_MODE_MAX:
                raise GuardError(
                    f"Safe mode: Cannot delete {to_delete} documents at once. "
                    f"Maximum {SAFE_MODE_MAX} allowed. Set safeMode: false to override."
                )

        doomed = snapshot(coll, query, 1 if operation == "deleteOne" else SNAPSHOT_LIMIT)
        if not doomed:
            return ToolOutcome.ok(
                operation,
                collection,
                deletedCount=0,
                message="No documents matched the filter criteria",
            )

        if operation == "deleteOne":
            result = coll.delete_one(query)
        else:
            result = coll.delete_many(query)

        logger.info(
            "%s on '%s' removed %d document(s)", operation, collection, result.deleted_count
        )
        return ToolOutcome.ok(
            operation,
            collection,
            deletedCount=result.deleted_count,
            documentsDeleted=doomed[: result.deleted_count],
            filter=dict(query),
        )
