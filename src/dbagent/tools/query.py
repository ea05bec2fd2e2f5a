"""Read-only queries: find, findOne, count, distinct and aggregate."""

import logging
from typing import (
    Any,
    Dict,
    List,
    Mapping,
)

from dbagent.core.schema import ToolOutcome
from dbagent.tools.base import (
    StoreTool,
    ToolValidationError,
    require_mapping,
)

logger = logging.getLogger(__name__)

DEFAULT_LIMIT = 10
MAX_LIMIT = 100


def clamp_limit(value: Any) -> int:
    """
    Return the number of documents to fetch for a requested *value*.

    Missing or non-positive values fall back to :data:`DEFAULT_LIMIT`; anything above
    :data:`MAX_LIMIT` is cut down to it.
    """
    if value is None:
        return DEFAULT_LIMIT
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ToolValidationError("limit must be a number")
    limit = int(value)
    if limit <= 0:
        return DEFAULT_LIMIT
    return min(limit, MAX_LIMIT)


class QueryTool(StoreTool):
    """Fetch documents, counts and distinct values from a collection."""

    name = "fetch_mongodb_data"
    description = (
        "Fetch data from MongoDB collections. Can find users, get collection stats, "
        "or query specific documents."
    )
    parameters = {
        "type": "object",
        "properties": {
            "collection": {
                "type": "string",
                "description": "The MongoDB collection to query (e.g., users, products, orders)",
            },
            "operation": {
                "type": "string",
                "enum": ["find", "findOne", "count", "distinct", "aggregate"],
                "description": "The operation to perform",
            },
            "query": {
                "type": ["object", "array"],
                "description": (
                    "Query filter object (MongoDB query syntax), or an aggregation pipeline "
                    "array for the aggregate operation"
                ),
                "default": {},
            },
            "limit": {
                "type": "number",
                "description": "Maximum number of documents to return (for find operations)",
                "default": DEFAULT_LIMIT,
                "maximum": MAX_LIMIT,
            },
            "fields": {
                "type": "object",
                "description": "Fields to include/exclude in results (MongoDB projection)",
                "default": {},
            },
            "field": {
                "type": "string",
                "description": "Field whose distinct values to return (distinct operation only)",
            },
        },
        "required": ["collection", "operation"],
    }
    operations = frozenset(parameters["properties"]["operation"]["enum"])

    def run(self, operation: str, collection: str, params: Mapping[str, Any]) -> ToolOutcome:
        query = params.get("query")
        if query is None:
            query = [] if operation == "aggregate" else {}
        projection = require_mapping(params.get("fields") or {}, "fields") or None

        if operation == "aggregate":
            if not isinstance(query, list):
                raise ToolValidationError(
                    "Query must be an aggregation pipeline array for aggregate operation"
                )
            return self._aggregate(collection, query, clamp_limit(params.get("limit")))

        query = require_mapping(query, "Query")
        if operation == "find":
            limit = clamp_limit(params.get("limit"))
            docs = list(self.collection(collection).find(query, projection).limit(limit))
            return self._documents(operation, collection, docs, limit=limit)

        if operation == "findOne":
            doc = self.collection(collection).find_one(query, projection)
            return ToolOutcome.ok(operation, collection, count=1 if doc else 0, data=doc)

        if operation == "count":
            total = self.collection(collection).count_documents(query)
            return ToolOutcome.ok(operation, collection, count=total, data=total)

        # distinct
        field = params.get("field")
        if not isinstance(field, str) or not field:
            raise ToolValidationError("Field parameter required for distinct operation")
        values = self.collection(collection).distinct(field, query)
        return self._documents(operation, collection, values, field=field)

    def _aggregate(self, collection: str, pipeline: List[Any], limit: int) -> ToolOutcome:
        for stage in pipeline:
            require_mapping(stage, "Each pipeline stage")
        # The cap applies to what leaves the pipeline, whatever the stages ask for
        capped = list(pipeline) + [{"$limit": limit}]
        docs = list(self.collection(collection).aggregate(capped))
        return self._documents("aggregate", collection, docs, limit=limit)

    @staticmethod
    def _documents(operation: str, collection: str, docs: List[Any], **extra: Any) -> ToolOutcome:
        logger.info("%s on '%s' returned %d result(s)", operation, collection, len(docs))
        details: Dict[str, Any] = {"count": len(docs), "data": docs}
        details.update(extra)
        return ToolOutcome.ok(operation, collection, **details)
