"""Insert tool: insertOne and insertMany."""

import logging
from typing import (
    Any,
    Dict,
    List,
    Mapping,
)

from bson import ObjectId

from dbagent.core.schema import ToolOutcome
from dbagent.tools.base import (
    GuardError,
    StoreTool,
    ToolValidationError,
    require_mapping,
)

logger = logging.getLogger(__name__)

MAX_INSERT_MANY = 100


def _prepare(document: Mapping[str, Any], generate_id: bool) -> Dict[str, Any]:
    # Copy so the caller's arguments are never mutated by the driver adding `_id`
    prepared = dict(document)
    if generate_id and not prepared.get("_id"):
        prepared["_id"] = ObjectId()
    return prepared


class InsertTool(StoreTool):
    """Insert one or many new documents into a collection."""

    name = "insert_mongodb_data"
    description = (
        "Insert new documents into MongoDB collections. Can add single documents or multiple "
        "documents at once."
    )
    parameters = {
        "type": "object",
        "properties": {
            "collection": {
                "type": "string",
                "description": (
                    "The MongoDB collection to insert data into (e.g., users, products, orders)"
                ),
            },
            "operation": {
                "type": "string",
                "enum": ["insertOne", "insertMany"],
                "description": "The insert operation to perform",
            },
            "data": {
                "type": ["object", "array"],
                "description": (
                    "The document(s) to insert. Use object for insertOne, array for insertMany"
                ),
            },
            "generateId": {
                "type": "boolean",
                "description": "Whether to generate ObjectId for _id field automatically",
                "default": True,
            },
        },
        "required": ["collection", "operation", "data"],
    }
    operations = frozenset(parameters["properties"]["operation"]["enum"])

    def run(self, operation: str, collection: str, params: Mapping[str, Any]) -> ToolOutcome:
        data = params.get("data")
        generate_id = params.get("generateId", True)
        if not isinstance(generate_id, bool):
            raise ToolValidationError("generateId must be a boolean")

        if operation == "insertOne":
            if isinstance(data, list):
                raise ToolValidationError("Use insertMany operation for array data")
            document = _prepare(require_mapping(data, "data"), generate_id)
            result = self.collection(collection).insert_one(document)
            logger.info("Inserted 1 document into '%s'", collection)
            return ToolOutcome.ok(
                operation,
                collection,
                insertedCount=1,
                insertedIds=[result.inserted_id],
                data=document,
            )

        # insertMany
        if not isinstance(data, list):
            raise ToolValidationError("insertMany requires an array of documents")
        if not data:
            raise ToolValidationError("insertMany requires at least one document")
        if len(data) > MAX_INSERT_MANY:
            raise GuardError(
                f"Cannot insert more than {MAX_INSERT_MANY} documents at once "
                f"(got {len(data)})"
            )
        documents: List[Dict[str, Any]] = [
            _prepare(require_mapping(doc, "Each document"), generate_id) for doc in data
        ]
        result = self.collection(collection).insert_many(documents)
        inserted_ids = list(result.inserted_ids)
        logger.info("Inserted %d documents into '%s'", len(inserted_ids), collection)
        return ToolOutcome.ok(
            operation,
            collection,
            insertedCount=len(inserted_ids),
            insertedIds=inserted_ids,
            data=documents,
        )
