"""Settings loading and validation tests."""

import pytest

from argo_mcp.config import load_settings
from argo_mcp.errors import ConfigurationError


@pytest.fixture(autouse=True)
def clean_env(monkeypatch, tmp_path):
    # keep a developer's .env or exported variables out of these tests
    monkeypatch.chdir(tmp_path)
    for name in (
        "ARGO_SERVER_URL",
        "ARGO_TOKEN",
        "ARGO_NAMESPACE",
        "TRANSPORT_TYPE",
        "LOG_LEVEL",
        "API_RETRY_ATTEMPTS",
        "HTTP_ALLOWED_ORIGINS",
    ):
        monkeypatch.delenv(name, raising=False)


class TestLoadSettings:
    def test_defaults(self, monkeypatch):
        monkeypatch.setenv("ARGO_SERVER_URL", "https://argo.example.com/")

        settings = load_settings()

        assert settings.argo_server_url == "https://argo.example.com"
        assert settings.argo_namespace == "default"
        assert settings.transport_type == "streamable-http"
        assert settings.api_retry_attempts == 3
        assert settings.http_path == "/mcp"
        assert settings.argo_token is None

    def test_environment_values(self, monkeypatch):
        monkeypatch.setenv("ARGO_SERVER_URL", "http://argo:2746")
        monkeypatch.setenv("ARGO_TOKEN", "Bearer abc")
        monkeypatch.setenv("TRANSPORT_TYPE", "STDIO")
        monkeypatch.setenv("LOG_LEVEL", "debug")

        settings = load_settings()

        assert settings.argo_token == "Bearer abc"
        assert settings.transport_type == "stdio"
        assert settings.log_level == "DEBUG"

    def test_env_file_is_read(self, tmp_path):
        (tmp_path / ".env").write_text("ARGO_SERVER_URL=http://from-file:2746\nARGO_NAMESPACE=ci\n")

        settings = load_settings()

        assert settings.argo_server_url == "http://from-file:2746"
        assert settings.argo_namespace == "ci"

    def test_overrides_win(self, monkeypatch):
        monkeypatch.setenv("ARGO_SERVER_URL", "http://argo:2746")

        assert load_settings(argo_namespace="prod").argo_namespace == "prod"

    def test_missing_server_url(self):
        with pytest.raises(ConfigurationError, match="argo_server_url"):
            load_settings()

    @pytest.mark.parametrize(
        "overrides",
        [
            {"argo_server_url": "argo:2746"},
            {"argo_server_url": "http://argo", "transport_type": "websocket"},
            {"argo_server_url": "http://argo", "api_retry_attempts": 11},
            {"argo_server_url": "http://argo", "api_timeout_seconds": 0},
        ],
    )
    def test_invalid_values(self, overrides):
        with pytest.raises(ConfigurationError, match="Invalid configuration"):
            load_settings(**overrides)

    def test_allowed_origins_are_split(self):
        settings = load_settings(
            argo_server_url="http://argo", http_allowed_origins=" https://a.example , ,https://b.example"
        )

        assert settings.allowed_origins() == ["https://a.example", "https://b.example"]
