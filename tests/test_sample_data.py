"""Seeding the sample ``users`` collection."""

from dbagent.db.mongo import MongoStore
from dbagent.db.sample_data import (
    SAMPLE_COLLECTION,
    SAMPLE_USERS,
    seed_sample_data,
)


def test_seed_inserts_once(store: MongoStore) -> None:
    """A second seed without *replace* leaves the collection alone."""

    assert seed_sample_data(store) == len(SAMPLE_USERS)
    assert seed_sample_data(store) == 0
    assert store.get_collection(SAMPLE_COLLECTION).count_documents({}) == len(SAMPLE_USERS)


def test_seed_with_replace_resets_the_collection(store: MongoStore) -> None:
    users = store.get_collection(SAMPLE_COLLECTION)
    users.insert_one({"_id": "stray", "name": "Nobody"})

    assert seed_sample_data(store, replace=True) == len(SAMPLE_USERS)
    assert users.find_one({"_id": "stray"}) is None
    assert users.count_documents({}) == len(SAMPLE_USERS)


def test_sample_users_have_unique_ids() -> None:
    ids = [user["_id"] for user in SAMPLE_USERS]
    assert len(ids) == len(set(ids)) == 10
