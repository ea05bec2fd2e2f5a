"""Insert tool: id generation, batch limits and shape validation."""

from unittest.mock import MagicMock

from bson import ObjectId

from dbagent.core.schema import ErrorKind
from dbagent.db.mongo import MongoStore
from dbagent.tools.insert import (
    MAX_INSERT_MANY,
    InsertTool,
)


def test_insert_one_generates_an_object_id(store: MongoStore) -> None:
    payload = {"name": "Laptop", "price": 999.99}
    outcome = InsertTool(store).execute(
        {"collection": "products", "operation": "insertOne", "data": payload}
    )

    assert outcome.success
    assert outcome.details["insertedCount"] == 1
    (new_id,) = outcome.details["insertedIds"]
    assert isinstance(new_id, ObjectId)
    assert store.get_collection("products").find_one({"_id": new_id})["name"] == "Laptop"
    assert "_id" not in payload


def test_insert_one_rejects_arrays(store: MongoStore) -> None:
    outcome = InsertTool(store).execute(
        {"collection": "products", "operation": "insertOne", "data": [{"a": 1}]}
    )

    assert not outcome.success
    assert outcome.error_kind is ErrorKind.VALIDATION
    assert "insertMany" in outcome.error
    assert store.get_collection("products").count_documents({}) == 0


def test_insert_many_over_the_limit_never_reaches_the_store() -> None:
    """The batch limit is checked before any collection is opened."""

    fake_store = MagicMock()
    docs = [{"n": i} for i in range(MAX_INSERT_MANY + 1)]
    outcome = InsertTool(fake_store).execute(
        {"collection": "products", "operation": "insertMany", "data": docs}
    )

    assert not outcome.success
    assert "more than 100" in outcome.error
    fake_store.get_collection.assert_not_called()


def test_insert_many_keeps_supplied_ids(store: MongoStore) -> None:
    docs = [{"_id": "p1", "name": "Mouse"}, {"name": "Keyboard"}]
    outcome = InsertTool(store).execute(
        {"collection": "products", "operation": "insertMany", "data": docs}
    )

    assert outcome.success
    assert outcome.details["insertedCount"] == 2
    ids = outcome.details["insertedIds"]
    assert ids[0] == "p1"
    assert isinstance(ids[1], ObjectId)
    assert store.get_collection("products").count_documents({}) == 2


def test_insert_without_generated_ids_uses_caller_ids(store: MongoStore) -> None:
    outcome = InsertTool(store).execute(
        {
            "collection": "products",
            "operation": "insertOne",
            "data": {"_id": "sku-1", "name": "Cable"},
            "generateId": False,
        }
    )

    assert outcome.success
    assert outcome.details["insertedIds"] == ["sku-1"]


def test_insert_many_requires_a_non_empty_array(store: MongoStore) -> None:
    tool = InsertTool(store)

    not_array = tool.execute({"collection": "p", "operation": "insertMany", "data": {"a": 1}})
    empty = tool.execute({"collection": "p", "operation": "insertMany", "data": []})

    assert not not_array.success and "array" in not_array.error
    assert not empty.success
