import textwrap

from smartroute.config import load_config


def test_defaults_when_file_missing(tmp_path, monkeypatch):
    monkeypatch.delenv("WORKSPACE_MCP_URL", raising=False)
    monkeypatch.delenv("TOOL_CALL_DELAY", raising=False)
    config = load_config(str(tmp_path / "missing.yaml"))

    assert config.rate_limits["openai"].max_requests == 3
    assert config.rate_limits["mcp"].window_seconds == 10
    assert config.tool_call_delay == 2.0
    assert [s.id for s in config.enabled_tool_servers()] == ["google_workspace"]
    assert "gmail" in config.tool_servers["google_workspace"].tools


def test_yaml_extends_rate_limits_and_declares_servers(tmp_path, monkeypatch):
    monkeypatch.delenv("WORKSPACE_MCP_URL", raising=False)
    path = tmp_path / "router.yaml"
    path.write_text(
        textwrap.dedent(
            """
            rate_limits:
              deepseek: {max_requests: 5, window_seconds: 30, retry_after_seconds: 10}
            tool_servers:
              notes:
                url: http://localhost:9000/mcp
                tools: [notes]
              disabled:
                url: http://localhost:9001/mcp
                enabled: false
            workspace_max_steps: 8
            """
        )
    )
    config = load_config(str(path))

    assert config.rate_limits["deepseek"].max_requests == 5
    assert "openai" in config.rate_limits
    assert [s.id for s in config.enabled_tool_servers()] == ["notes"]
    assert config.workspace_max_steps == 8


def test_env_overrides(tmp_path, monkeypatch):
    monkeypatch.setenv("WORKSPACE_MCP_URL", "http://workspace:8000/mcp")
    monkeypatch.setenv("TOOL_CALL_DELAY", "0")
    config = load_config(str(tmp_path / "missing.yaml"))

    assert config.workspace_url == "http://workspace:8000/mcp"
    assert config.tool_servers["google_workspace"].url == "http://workspace:8000/mcp"
    assert config.tool_call_delay == 0


def test_config_path_from_env(tmp_path, monkeypatch):
    path = tmp_path / "custom.yaml"
    path.write_text("tool_call_delay: 0.5\n")
    monkeypatch.setenv("ROUTER_CONFIG", str(path))
    monkeypatch.delenv("TOOL_CALL_DELAY", raising=False)
    assert load_config().tool_call_delay == 0.5
