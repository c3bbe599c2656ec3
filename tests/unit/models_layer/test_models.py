"""
Unit Tests for Gateway Models

Tests FetchedObject wire mapping and serialization, credential rotation
and deterministic record keys.
"""

import uuid

import pytest

from feedgate.core.exceptions import PermanentError
from feedgate.models.credential import ClientHandle, Credential, TokenPair
from feedgate.models.fetched_object import FetchedObject
from feedgate.models.records import (
    IngestionRecord,
    derive_key,
    effective_group,
    fallback_group,
    record_key,
    room_key,
)
from tests.test_fixtures import make_object, make_wire_object


@pytest.mark.unit
class TestFetchedObject:
    """Test suite for FetchedObject."""

    def test_from_wire_maps_fields(self):
        """Test that a v2 payload maps onto the object fields."""
        wire = make_wire_object("10", conversation_id="c-1", reply_to="9")
        wire["entities"] = {
            "hashtags": [{"tag": "python"}],
            "mentions": [{"username": "feedgate"}],
            "urls": [{"url": "https://t.co/x", "expanded_url": "https://example.com"}],
        }

        obj = FetchedObject.from_wire(wire)

        assert obj.id == "10"
        assert obj.group_id == "c-1"
        assert obj.in_reply_to_id == "9"
        assert obj.author_username == "alice"
        assert obj.hashtags == ("python",)
        assert obj.mentions == ("feedgate",)
        assert obj.urls == ("https://example.com",)
        assert obj.permanent_url.endswith("/10")

    def test_from_wire_resolves_author_from_users(self):
        """Test that author names come from the users expansion when not merged."""
        wire = make_wire_object("10", author_id="300")
        wire.pop("author")

        obj = FetchedObject.from_wire(wire, users=[{"id": "300", "username": "carol", "name": "Carol"}])

        assert obj.author_username == "carol"
        assert obj.author_name == "Carol"

    def test_from_wire_requires_id(self):
        """Test that a payload without an id is rejected."""
        with pytest.raises(PermanentError):
            FetchedObject.from_wire({"text": "anonymous"})

    def test_from_wire_rejects_unparseable_created_at(self):
        """Test that a non-ISO timestamp is rejected at mapping time."""
        wire = make_wire_object("10")
        wire["created_at"] = "Wed Oct 10 20:19:24 +0000 2018"

        with pytest.raises(PermanentError) as exc_info:
            FetchedObject.from_wire(wire)

        assert exc_info.value.details["id"] == "10"

    def test_partition_falls_back_to_id(self):
        """Test that an ungrouped object is its own partition."""
        assert make_object("5", conversation_id=None).partition == "5"
        assert make_object("5", conversation_id="c").partition == "c"

    def test_json_round_trip(self):
        """Test that cache serialization preserves every field."""
        obj = make_object("11", reply_to="10")
        assert FetchedObject.from_json(obj.to_json()) == obj

    def test_timestamp(self):
        """Test that created_at converts to epoch seconds."""
        obj = make_object("1", created_at="1970-01-01T00:01:40.000Z")
        assert obj.timestamp == 100.0


@pytest.mark.unit
class TestCredential:
    """Test suite for Credential and ClientHandle."""

    def test_rotate_increments_generation(self):
        credential = Credential("a0", "r0", generation=3)
        rotated = credential.rotate(TokenPair("a1", "r1"))

        assert rotated == Credential("a1", "r1", generation=4)

    def test_empty_handle(self):
        """Test that a fresh handle has no token and generation -1."""
        handle = ClientHandle("bot")

        assert handle.access_token is None
        assert handle.generation == -1

    def test_install_swaps_credential(self):
        handle = ClientHandle("bot")
        handle.install(Credential("a0", "r0"))

        assert handle.access_token == "a0"
        assert "generation=0" in repr(handle)


@pytest.mark.unit
class TestRecordKeys:
    """Test suite for deterministic record keys."""

    def test_keys_are_deterministic_uuids(self):
        """Test that the same input always yields the same uuid."""
        key = record_key("123", "agent-1")

        assert key == record_key("123", "agent-1")
        assert uuid.UUID(key).version == 5
        assert key != record_key("123", "agent-2")
        assert key == derive_key("123-agent-1")

    def test_fallback_group(self):
        """Test that ungrouped objects use the agent's default room."""
        obj = make_object("1", conversation_id=None)

        assert fallback_group("agent-1") == "default-room-agent-1"
        assert effective_group(obj, "agent-1") == "default-room-agent-1"

    def test_ingestion_record_from_object(self):
        """Test record construction from a fetched object."""
        obj = make_object("7", conversation_id="c-7", author_id="300", reply_to="6")

        record = IngestionRecord.from_object(obj, "agent-1", self_user_id="100", source="twitter")

        assert record.key == record_key("7", "agent-1")
        assert record.room_id == room_key("c-7", "agent-1")
        assert record.user_id == derive_key("300")
        assert record.content["in_reply_to"] == record_key("6", "agent-1")
        assert record.created_at_ms == int(obj.timestamp * 1000)
