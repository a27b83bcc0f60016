"""
Tests for Langfuse tracing integration.

Tests cover:
- Client disabled states (credentials, auth check)
- Context manager no-ops when disabled
- Trace and child observation lifecycle with mocked Langfuse
"""

from unittest.mock import MagicMock, patch

from vault_agent.tracing import TracingClient, TracingContext


def observation(trace_id="trace-1", span_id="span-1"):
    obs = MagicMock()
    obs.trace_id = trace_id
    obs.id = span_id
    manager = MagicMock()
    manager.__enter__.return_value = obs
    return manager, obs


def enabled_client(*managers):
    tracing_client = MagicMock()
    tracing_client.enabled = True
    tracing_client.client.start_as_current_observation.side_effect = list(managers)
    return tracing_client


class TestTracingClient:
    """Tests for TracingClient."""

    def test_disabled_without_credentials(self):
        client = TracingClient(public_key="", secret_key="")
        assert client.enabled is False
        assert "credentials not configured" in client.error.lower()

    def test_disabled_with_partial_credentials(self):
        client = TracingClient(public_key="pk-test", secret_key="")
        assert client.enabled is False

    @patch("vault_agent.tracing.client.Langfuse")
    def test_enabled_when_auth_succeeds(self, mock_langfuse):
        mock_langfuse.return_value.auth_check.return_value = True

        client = TracingClient(public_key="pk", secret_key="sk", host="http://langfuse:3000")

        assert client.enabled is True
        assert client.error is None
        mock_langfuse.assert_called_once_with(
            public_key="pk", secret_key="sk", debug=False, host="http://langfuse:3000"
        )

    @patch("vault_agent.tracing.client.Langfuse")
    def test_disabled_when_auth_fails(self, mock_langfuse):
        mock_langfuse.return_value.auth_check.return_value = False

        client = TracingClient(public_key="pk", secret_key="sk")

        assert client.enabled is False
        assert client.client is None
        assert "auth_check" in client.error

    @patch("vault_agent.tracing.client.Langfuse")
    def test_disabled_when_host_unreachable(self, mock_langfuse):
        mock_langfuse.return_value.auth_check.side_effect = ConnectionError("refused")

        client = TracingClient(public_key="pk", secret_key="sk")

        assert client.enabled is False
        assert "refused" in client.error

    def test_flush_and_shutdown_noop_when_disabled(self):
        client = TracingClient()
        client.flush()
        client.shutdown()


class TestTracingContextDisabled:
    """Everything is a no-op without a tracing client."""

    @patch("vault_agent.tracing.context.get_tracing_client", return_value=None)
    def test_noop(self, _):
        ctx = TracingContext(turn_id="turn-1", conversation_id="c1")
        ctx.start_trace(name="run_turn", message="hi")
        with ctx.span("tool:x") as span:
            span.set_output("ok")
        with ctx.generation("agent_completion", model="m") as gen:
            gen.set_usage(1, 2)
        ctx.end_trace(status="success")

        assert ctx.enabled is False
        assert ctx.trace_context() is None


class TestTracingContextEnabled:
    """Lifecycle against a mocked Langfuse client."""

    def test_trace_and_span(self):
        root_manager, root = observation()
        child_manager, child = observation("trace-1", "span-2")
        tracing_client = enabled_client(root_manager, child_manager)

        with patch("vault_agent.tracing.context.get_tracing_client", return_value=tracing_client):
            ctx = TracingContext(turn_id="turn-1", conversation_id="conv-1")
            ctx.start_trace(name="run_turn", message="hi")
            with ctx.span("tool:obsidian_search", input={"query": "x"}) as span:
                span.set_output("found")
            ctx.end_trace(output="done", status="success")

        root.update_trace.assert_called_once_with(session_id="conv-1")
        calls = tracing_client.client.start_as_current_observation.call_args_list
        assert calls[0].kwargs["trace_context"] is None
        assert calls[1].kwargs["trace_context"] == {
            "trace_id": "trace-1",
            "parent_span_id": "span-1",
        }
        assert calls[1].kwargs["as_type"] == "span"
        assert child.update.call_args.kwargs["output"] == "found"
        child_manager.__exit__.assert_called_once()
        assert root.update.call_args.kwargs["metadata"]["status"] == "success"
        root_manager.__exit__.assert_called_once()

    def test_generation_records_usage(self):
        root_manager, _ = observation()
        gen_manager, gen_obs = observation("trace-1", "gen-1")
        tracing_client = enabled_client(root_manager, gen_manager)

        with patch("vault_agent.tracing.context.get_tracing_client", return_value=tracing_client):
            ctx = TracingContext(turn_id="turn-1")
            ctx.start_trace()
            with ctx.generation("agent_completion", model="m", input=[]) as gen:
                gen.set_output("hello")
                gen.set_usage(input_tokens=3, output_tokens=4)

        kwargs = gen_obs.update.call_args.kwargs
        assert kwargs["usage_details"] == {"input": 3, "output": 4}
        assert kwargs["output"] == "hello"

    def test_start_failure_disables_trace(self):
        tracing_client = MagicMock()
        tracing_client.enabled = True
        tracing_client.client.start_as_current_observation.side_effect = RuntimeError("otel")

        with patch("vault_agent.tracing.context.get_tracing_client", return_value=tracing_client):
            ctx = TracingContext(turn_id="turn-1")
            ctx.start_trace()
            ctx.end_trace()

        assert ctx.trace_context() is None


class TestProcessClient:
    """Tests for the process-wide client helpers."""

    def test_init_from_config_and_shutdown(self):
        from vault_agent.models import LangfuseConfig
        from vault_agent.tracing import get_tracing_client, init_tracing_client, shutdown_tracing

        client = init_tracing_client(LangfuseConfig())
        try:
            assert get_tracing_client() is client
            assert client.enabled is False
        finally:
            shutdown_tracing()
        assert get_tracing_client() is None
