"""Delete tool: confirmation, empty filters and the safe-mode ceiling."""

import pytest

from dbagent.core.schema import ErrorKind
from dbagent.db.mongo import MongoStore
from dbagent.tools.delete import DeleteTool


@pytest.fixture
def sessions(store: MongoStore) -> MongoStore:
    coll = store.get_collection("sessions")
    coll.insert_many([{"_id": f"s{i}", "state": "expired"} for i in range(11)])
    coll.insert_many([{"_id": f"a{i}", "state": "active"} for i in range(3)])
    return store


@pytest.mark.parametrize("confirm", [None, False, "true", 1])
def test_deletion_requires_literal_true_confirmation(sessions: MongoStore, confirm) -> None:
    """Only the boolean true counts as confirmation; truthy look-alikes do not."""

    params = {"collection": "sessions", "operation": "deleteOne", "filter": {"_id": "s1"}}
    if confirm is not None:
        params["confirmDeletion"] = confirm
    outcome = DeleteTool(sessions).execute(params)

    assert not outcome.success
    assert "confirmDeletion: true" in outcome.error
    assert sessions.get_collection("sessions").count_documents({}) == 14


@pytest.mark.parametrize("empty_filter", [{}, None])
def test_empty_filter_is_rejected_with_a_hint(sessions: MongoStore, empty_filter) -> None:
    params = {"collection": "sessions", "operation": "deleteMany", "confirmDeletion": True}
    if empty_filter is not None:
        params["filter"] = empty_filter
    outcome = DeleteTool(sessions).execute(params)

    assert not outcome.success
    assert "$exists" in outcome.error
    assert sessions.get_collection("sessions").count_documents({}) == 14


def test_safe_mode_blocks_large_delete_many(sessions: MongoStore) -> None:
    outcome = DeleteTool(sessions).execute(
        {
            "collection": "sessions",
            "operation": "deleteMany",
            "filter": {"state": "expired"},
            "confirmDeletion": True,
        }
    )

    assert not outcome.success
    assert outcome.error_kind is ErrorKind.GUARD
    assert "11" in outcome.error
    assert sessions.get_collection("sessions").count_documents({}) == 14


def test_safe_mode_off_removes_exactly_the_matches(sessions: MongoStore) -> None:
    """Documents outside the filter must survive a bulk delete."""

    outcome = DeleteTool(sessions).execute(
        {
            "collection": "sessions",
            "operation": "deleteMany",
            "filter": {"state": "expired"},
            "confirmDeletion": True,
            "safeMode": False,
        }
    )

    assert outcome.success
    assert outcome.details["deletedCount"] == 11
    assert len(outcome.details["documentsDeleted"]) == 11
    remaining = sessions.get_collection("sessions")
    assert remaining.count_documents({}) == 3
    assert remaining.count_documents({"state": "active"}) == 3


def test_delete_one_returns_the_removed_document(sessions: MongoStore) -> None:
    outcome = DeleteTool(sessions).execute(
        {
            "collection": "sessions",
            "operation": "deleteOne",
            "filter": {"_id": "a0"},
            "confirmDeletion": True,
        }
    )

    assert outcome.success
    assert outcome.details["deletedCount"] == 1
    assert outcome.details["documentsDeleted"] == [{"_id": "a0", "state": "active"}]
    assert outcome.details["filter"] == {"_id": "a0"}


def test_delete_without_matches_is_a_no_op(sessions: MongoStore) -> None:
    outcome = DeleteTool(sessions).execute(
        {
            "collection": "sessions",
            "operation": "deleteMany",
            "filter": {"state": "archived"},
            "confirmDeletion": True,
        }
    )

    assert outcome.success
    assert outcome.details["deletedCount"] == 0
    assert "message" in outcome.details
