"""Tests for the TTL-cached tool catalog."""

import asyncio

from conftest import FakeToolProvider, descriptor

from vault_agent.tools import CatalogSnapshot, ToolCatalog, ToolDescriptor


class FakeClock:
    def __init__(self, now: float = 0.0):
        self.now = now

    def __call__(self) -> float:
        return self.now


def three_tools(server: str) -> list[ToolDescriptor]:
    return [descriptor(f"{server}_tool_{i}", server) for i in range(3)]


class TestToolDescriptor:
    """Tests for ToolDescriptor."""

    def test_to_openai_tool(self):
        """Descriptors render in function-calling format."""
        tool = descriptor("obsidian_delete_file")
        rendered = tool.to_openai_tool()
        assert rendered["type"] == "function"
        assert rendered["function"]["name"] == "obsidian_delete_file"
        assert rendered["function"]["parameters"]["type"] == "object"

    def test_empty_schema_gets_object_parameters(self):
        """A tool without a schema still advertises an object."""
        tool = ToolDescriptor(name="ping", server="a")
        assert tool.to_openai_tool()["function"]["parameters"] == {
            "type": "object",
            "properties": {},
        }


class TestCatalogSnapshot:
    """Tests for CatalogSnapshot."""

    def test_get_is_case_insensitive(self):
        snapshot = CatalogSnapshot(tools=(descriptor("Obsidian_Search"),))
        assert snapshot.get("obsidian_search").name == "Obsidian_Search"
        assert snapshot.get("missing") is None

    def test_expiry(self):
        snapshot = CatalogSnapshot(expires_at=10.0)
        assert not snapshot.is_expired(9.9)
        assert snapshot.is_expired(10.0)


class TestToolCatalog:
    """Tests for ToolCatalog."""

    async def test_merges_all_servers(self):
        """Tools from every server appear in server order."""
        provider = FakeToolProvider(tools={"a": three_tools("a"), "b": three_tools("b")})
        catalog = ToolCatalog(provider, ["a", "b"])

        snapshot = await catalog.get_tools()

        assert len(snapshot) == 6
        assert snapshot.names()[:3] == ["a_tool_0", "a_tool_1", "a_tool_2"]
        assert dict(snapshot.per_server_counts) == {"a": 3, "b": 3}

    async def test_failing_server_contributes_nothing(self):
        """One server failing does not fail the catalog."""
        provider = FakeToolProvider(
            tools={"a": three_tools("a"), "b": three_tools("b")}, failing=("b",)
        )
        catalog = ToolCatalog(provider, ["a", "b"])

        snapshot = await catalog.get_tools()

        assert len(snapshot) == 3
        assert dict(snapshot.per_server_counts) == {"a": 3, "b": 0}

    async def test_slow_server_times_out(self):
        """A server slower than the discovery timeout contributes nothing."""
        provider = FakeToolProvider(
            tools={"a": three_tools("a"), "b": three_tools("b")}, delays={"b": 1.0}
        )
        catalog = ToolCatalog(provider, ["a", "b"], discovery_timeout=0.05)

        snapshot = await catalog.get_tools()

        assert snapshot.names() == ["a_tool_0", "a_tool_1", "a_tool_2"]
        assert dict(snapshot.per_server_counts) == {"a": 3, "b": 0}

    async def test_no_servers_yields_empty_snapshot(self):
        """Zero servers is an empty catalog, not an error."""
        provider = FakeToolProvider()
        catalog = ToolCatalog(provider, [])

        snapshot = await catalog.get_tools()

        assert len(snapshot) == 0
        assert dict(snapshot.per_server_counts) == {}
        assert provider.list_calls == []

    async def test_duplicate_names_first_seen_wins(self):
        """The first server to advertise a name owns it, ignoring case."""
        provider = FakeToolProvider(
            tools={
                "a": [descriptor("search", "a")],
                "b": [descriptor("SEARCH", "b"), descriptor("other", "b")],
            }
        )
        catalog = ToolCatalog(provider, ["a", "b"])

        snapshot = await catalog.get_tools()

        assert snapshot.names() == ["search", "other"]
        assert snapshot.get("search").server == "a"
        assert dict(snapshot.per_server_counts) == {"a": 1, "b": 2}

    async def test_concurrent_callers_share_one_refresh(self):
        """Concurrent cold reads fan out to each server exactly once."""
        provider = FakeToolProvider(
            tools={"a": three_tools("a"), "b": three_tools("b")},
            delays={"a": 0.02, "b": 0.02},
        )
        catalog = ToolCatalog(provider, ["a", "b"])

        snapshots = await asyncio.gather(*(catalog.get_tools() for _ in range(10)))

        assert sorted(provider.list_calls) == ["a", "b"]
        assert all(s is snapshots[0] for s in snapshots)

    async def test_cached_within_ttl(self):
        """Reads inside the TTL reuse the snapshot."""
        clock = FakeClock()
        provider = FakeToolProvider(tools={"a": three_tools("a")})
        catalog = ToolCatalog(provider, ["a"], ttl_seconds=300, clock=clock)

        first = await catalog.get_tools()
        clock.now = 299.0
        second = await catalog.get_tools()

        assert first is second
        assert provider.list_calls == ["a"]

    async def test_refreshes_after_ttl(self):
        """A stale snapshot is rebuilt on the next read."""
        clock = FakeClock()
        provider = FakeToolProvider(tools={"a": three_tools("a")})
        catalog = ToolCatalog(provider, ["a"], ttl_seconds=300, clock=clock)

        first = await catalog.get_tools()
        clock.now = 300.0
        second = await catalog.get_tools()

        assert first is not second
        assert provider.list_calls == ["a", "a"]

    async def test_invalidate_forces_refresh(self):
        provider = FakeToolProvider(tools={"a": three_tools("a")})
        catalog = ToolCatalog(provider, ["a"])

        await catalog.get_tools()
        catalog.invalidate()
        await catalog.get_tools()

        assert provider.list_calls == ["a", "a"]

    async def test_get_tools_from_servers_bypasses_cache(self):
        """Subset queries neither read nor replace the cached snapshot."""
        provider = FakeToolProvider(tools={"a": three_tools("a"), "b": three_tools("b")})
        catalog = ToolCatalog(provider, ["a", "b"])
        cached = await catalog.get_tools()

        subset = await catalog.get_tools_from_servers(["b"])

        assert subset.names() == ["b_tool_0", "b_tool_1", "b_tool_2"]
        assert await catalog.get_tools() is cached
        assert provider.list_calls.count("b") == 2
