"""Tests for runtime construction."""

from conftest import collect, make_app_config, text_chunk, tool_round

from vault_agent.models import ThreadsConfig
from vault_agent.runtime import create_thread_store
from vault_agent.threads import InMemoryThreadStore, JsonFileThreadStore


class TestCreateThreadStore:
    def test_memory_backend(self):
        store = create_thread_store(make_app_config())
        assert type(store) is InMemoryThreadStore

    def test_json_backend(self, tmp_path):
        app_config = make_app_config(
            threads=ThreadsConfig(backend="json", directory=str(tmp_path / "threads"))
        )
        store = create_thread_store(app_config)
        assert isinstance(store, JsonFileThreadStore)
        assert (tmp_path / "threads").is_dir()


class TestBuildRuntime:
    """Tests for build_runtime()."""

    def test_wiring(self, make_runtime):
        runtime = make_runtime()
        assert runtime.catalog.servers == ["obsidian", "filesystem"]
        assert runtime.gate.path_resolver is runtime.resolver
        assert runtime.gate.executor == runtime.router.execute
        assert runtime.orchestrator.gate is runtime.gate
        assert runtime.gate.is_destructive("obsidian_move_file")

    async def test_shutdown_clears_state(self, make_runtime):
        runtime = make_runtime(
            [
                tool_round("call_1", "obsidian_delete_file", {"filepath": "notes/todo.md"}),
                [text_chunk("Please confirm.")],
            ]
        )
        conversation_id = runtime.orchestrator.start_conversation()
        await collect(runtime.orchestrator.run_turn(conversation_id, "delete"))
        assert runtime.gate.pending_count() == 1

        runtime.shutdown()

        assert runtime.gate.pending_count() == 0
        assert len(runtime.thread_store) == 0
