from unittest.mock import MagicMock

import pytest

from app.models.schemas import LearningProfile
from app.services.learning_profile import LearningProfileStore, format_profile


@pytest.fixture
def mongo_client():
    """MongoClient stand-in whose collection lookup is a MagicMock"""
    client = MagicMock()
    collection = MagicMock()
    client.__getitem__.return_value.__getitem__.return_value = collection
    return client, collection


@pytest.mark.asyncio
async def test_disabled_without_connection_string():
    store = LearningProfileStore(connection_string="")

    assert not store.enabled
    assert await store.get_profile("u1") is None


@pytest.mark.asyncio
async def test_get_profile(mongo_client):
    client, collection = mongo_client
    collection.find_one.return_value = {"userId": "u1", "strugglingWith": ["recursion"], "strengths": ["algebra"]}
    store = LearningProfileStore(client=client)

    profile = await store.get_profile("u1")

    assert profile.user_id == "u1"
    assert profile.struggling_with == ["recursion"]
    collection.find_one.assert_called_once_with({"userId": "u1"}, {"_id": 0})


@pytest.mark.asyncio
async def test_missing_profile_and_missing_user(mongo_client):
    client, collection = mongo_client
    collection.find_one.return_value = None
    store = LearningProfileStore(client=client)

    assert await store.get_profile("nobody") is None
    assert await store.get_profile(None) is None
    collection.find_one.assert_called_once()


@pytest.mark.asyncio
async def test_database_errors_return_none(mongo_client):
    client, collection = mongo_client
    collection.find_one.side_effect = RuntimeError("connection refused")
    store = LearningProfileStore(client=client)

    assert await store.get_profile("u1") is None


def test_format_profile():
    profile = LearningProfile(user_id="u1", struggling_with=["limits", "series"], preferred_complexity="basic")

    text = format_profile(profile)

    assert "struggled with before: limits, series" in text
    assert "Be extra patient" in text
    assert "Preferred explanation level: basic" in text
    assert format_profile(None) == ""
    assert format_profile(LearningProfile(user_id="u2")) == ""
