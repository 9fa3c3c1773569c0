"""Tests for the shared knowledge base."""

import pytest

from strata.memory.shared import KnowledgeEntry, SharedKnowledgeBase
from strata.memory.value import MemoryValue
from strata.storage.inmemory import InMemoryStorage


@pytest.fixture
def storage():
    return InMemoryStorage()


@pytest.fixture
def kb_a(storage):
    return SharedKnowledgeBase(storage, "agentA")


@pytest.fixture
def kb_b(storage):
    return SharedKnowledgeBase(storage, "agentB")


@pytest.fixture
def kb_c(storage):
    return SharedKnowledgeBase(storage, "agentC")


@pytest.mark.asyncio
async def test_store_and_get_value(kb_a: SharedKnowledgeBase, storage):
    entry = await kb_a.store("api_url", "https://example.test")

    value = await kb_a.get_value("api_url")
    assert value.as_string() == "https://example.test"
    assert entry.created_by == "agentA"
    assert await storage.exists("global::knowledge::api_url")


@pytest.mark.asyncio
async def test_public_entry_visible_to_all(kb_a, kb_c):
    await kb_a.store("shared_config", "value")
    entry = await kb_c.get("shared_config")
    assert entry is not None
    assert entry.value.as_string() == "value"


@pytest.mark.asyncio
async def test_acl_restricts_visibility(kb_a, kb_b, kb_c):
    """Listed agents see the entry, others get None."""
    entry = KnowledgeEntry(
        key="secret",
        value=MemoryValue.string("s3cr3t"),
        created_by="agentA",
        acl=["agentA", "agentB"],
    )
    await kb_a.store_entry(entry)

    assert await kb_a.get("secret") is not None
    assert await kb_b.get("secret") is not None
    assert await kb_c.get("secret") is None
    assert not await kb_c.exists("secret")


@pytest.mark.asyncio
async def test_creator_sees_entry_outside_acl(kb_a, kb_b):
    await kb_a.store("note", "x", acl=["agentB"])
    assert await kb_a.get("note") is not None
    assert await kb_b.get("note") is not None


@pytest.mark.asyncio
async def test_only_creator_can_delete(kb_a, kb_b, kb_c):
    await kb_a.store("secret", "v", acl=["agentA", "agentB"])

    assert await kb_b.delete("secret") is False
    assert await kb_c.delete("secret") is False
    assert await kb_a.get("secret") is not None

    assert await kb_a.delete("secret") is True
    assert await kb_a.get("secret") is None


@pytest.mark.asyncio
async def test_store_entry_stamps_updater(kb_a, kb_b):
    entry = await kb_a.store("doc", "v1")
    assert entry.updated_by == "agentA"
    first_update = entry.updated_at

    entry.value = MemoryValue.string("v2")
    await kb_b.store_entry(entry)

    stored = await kb_a.get("doc")
    assert stored.created_by == "agentA"
    assert stored.updated_by == "agentB"
    assert stored.updated_at >= first_update
    assert stored.value.as_string() == "v2"


@pytest.mark.asyncio
async def test_find_by_tag_and_creator(kb_a, kb_b, kb_c):
    await kb_a.store_with_tags("rust_tip", "use clippy", ["rust", "tips"])
    await kb_b.store("py_tip", "use ruff", tags=["python", "tips"])
    await kb_a.store("hidden", "x", tags=["tips"], acl=["agentA"])

    tips = await kb_c.find_by_tag("tips")
    assert {e.key for e in tips} == {"rust_tip", "py_tip"}
    assert {e.key for e in await kb_a.find_by_tag("tips")} == {"rust_tip", "py_tip", "hidden"}

    by_a = await kb_c.find_by_creator("agentA")
    assert [e.key for e in by_a] == ["rust_tip"]


@pytest.mark.asyncio
async def test_count_is_unfiltered(kb_a, kb_c):
    await kb_a.store("public", 1)
    await kb_a.store("private", 2, acl=[])

    assert await kb_c.count() == 2
    assert len(await kb_c.get_all_entries()) == 1

    await kb_c.clear()
    assert await kb_a.count() == 0


def test_entry_serialization():
    entry = KnowledgeEntry(key="k", value=[1, 2], created_by="a", tags=["t"], metadata={"src": "x"})
    restored = KnowledgeEntry.from_dict(entry.to_dict())
    assert restored == entry
