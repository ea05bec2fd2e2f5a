"""Update tool: updateOne, updateMany and replaceOne."""

import logging
from typing import (
    Any,
    Dict,
    Mapping,
)

from dbagent.core.schema import ToolOutcome
from dbagent.tools.base import (
    GuardError,
    StoreTool,
    ToolValidationError,
    operator_keys,
    require_filter,
    require_mapping,
    snapshot,
)

logger = logging.getLogger(__name__)

SNAPSHOT_LIMIT = 100
REPORT_LIMIT = 10
BULK_UPDATE_THRESHOLD = 50


class UpdateTool(StoreTool):
    """Modify or replace documents matching a non-empty filter."""

    name = "update_mongodb_data"
    description = (
        "Update existing documents in MongoDB collections. Can update single documents or "
        "multiple documents matching criteria."
    )
    parameters = {
        "type": "object",
        "properties": {
            "collection": {
                "type": "string",
                "description": (
                    "The MongoDB collection to update data in (e.g., users, products, orders)"
                ),
            },
            "operation": {
                "type": "string",
                "enum": ["updateOne", "updateMany", "replaceOne"],
                "description": "The update operation to perform",
            },
            "filter": {
                "type": "object",
                "description": (
                    "Query filter to specify which documents to update (MongoDB query syntax)"
                ),
            },
            "update": {
                "type": "object",
                "description": (
                    "Update operations or replacement document (use $set, $inc, $push, etc. "
                    "for updates)"
                ),
            },
            "options": {
                "type": "object",
                "description": "Additional options like upsert, arrayFilters",
                "properties": {
                    "upsert": {
                        "type": "boolean",
                        "description": "Create document if it doesn't exist",
                        "default": False,
                    },
                    "arrayFilters": {
                        "type": "array",
                        "description": "Filters selecting array elements for positional updates",
                    },
                    "allowBulkUpdate": {
                        "type": "boolean",
                        "description": (
                            f"Required for updateMany when more than {BULK_UPDATE_THRESHOLD} "
                            "documents match"
                        ),
                        "default": False,
                    },
                },
                "default": {},
            },
        },
        "required": ["collection", "operation", "filter", "update"],
    }
    operations = frozenset(parameters["properties"]["operation"]["enum"])

    def run(self, operation: str, collection: str, params: Mapping[str, Any]) -> ToolOutcome:
        query = require_filter(params.get("filter"), "update")
        update = require_mapping(params.get("update"), "Update")
        if not update:
            raise ToolValidationError("Update document cannot be empty")
        options = require_mapping(params.get("options") or {}, "options")

        operators = operator_keys(update)
        if operation == "replaceOne":
            if operators:
                raise ToolValidationError(
                    "replaceOne operation cannot use update operators ($set, $inc, etc.). "
                    "Use updateOne instead."
                )
        elif len(operators) != len(update):
            raise ToolValidationError(
                f"{operation} requires update operators ($set, $inc, $push, etc.); "
                "use replaceOne to replace a whole document"
            )

        upsert = bool(options.get("upsert", False))
        driver_kwargs: Dict[str, Any] = {"upsert": upsert}
        if options.get("arrayFilters"):
            if operation == "replaceOne":
                raise ToolValidationError("arrayFilters cannot be used with replaceOne")
            driver_kwargs["array_filters"] = options["arrayFilters"]

        coll = self.collection(collection)
        before_limit = 1 if operation == "updateOne" else SNAPSHOT_LIMIT
        original = snapshot(coll, query, before_limit)

        if not original and not upsert:
            return ToolOutcome.ok(
                operation,
                collection,
                matchedCount=0,
                modifiedCount=0,
                message="No documents matched the filter criteria",
            )

        if operation == "updateMany":
            if len(original) > BULK_UPDATE_THRESHOLD and not options.get("allowBulkUpdate"):
                raise GuardError(
                    f"Attempting to update {len(original)} documents. "
                    "Add allowBulkUpdate: true in options to proceed."
                )
            result = coll.update_many(query, update, **driver_kwargs)
        elif operation == "updateOne":
            result = coll.update_one(query, update, **driver_kwargs)
        else:
            result = coll.replace_one(query, update, **driver_kwargs)

        logger.info(
            "%s on '%s': matched %d, modified %d",
            operation,
            collection,
            result.matched_count,
            result.modified_count,
        )
        after_limit = 1 if operation == "updateOne" else REPORT_LIMIT
        updated = snapshot(coll, query, after_limit)
        return ToolOutcome.ok(
            operation,
            collection,
            matchedCount=result.matched_count,
            modifiedCount=result.modified_count,
            upsertedCount=0 if result.upserted_id is None else 1,
            upsertedId=result.upserted_id,
            originalDocuments=original[:REPORT_LIMIT],
            updatedDocuments=updated,
            filter=dict(query),
            update=dict(update),
        )
