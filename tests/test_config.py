"""
Tests for ClientConfig and TimeoutConfig environment handling.
"""

from pathlib import Path

import pytest

from village_client.config import (
    DEFAULT_BASE_URL,
    ClientConfig,
    TimeoutConfig,
    normalize_base_url,
)
from village_client.errors import ConfigError
from village_client.utils.paths import get_logs_dir, get_session_file


class TestNormalizeBaseUrl:
    def test_strips_trailing_slash(self):
        assert normalize_base_url(" https://api.village.test/v1/ ") == "https://api.village.test/v1"

    @pytest.mark.parametrize("url", ["", "api.village.test", "ftp://api.village.test", "http://"])
    def test_rejects_non_http_urls(self, url):
        with pytest.raises(ConfigError):
            normalize_base_url(url)


class TestTimeoutConfig:
    def test_defaults(self):
        timeout = TimeoutConfig.default(env={})
        assert (timeout.connect, timeout.read, timeout.write, timeout.pool) == (10.0, 30.0, 30.0, 30.0)

    def test_env_overrides(self):
        timeout = TimeoutConfig.default(
            env={"VILLAGE_TIMEOUT_CONNECT": "2.5", "VILLAGE_TIMEOUT_READ": "60"}
        )
        assert timeout.connect == 2.5
        assert timeout.read == 60.0

    @pytest.mark.parametrize("value", ["abc", "0", "-4"])
    def test_invalid_values_fall_back(self, value, caplog):
        with caplog.at_level("WARNING", logger="village_client"):
            timeout = TimeoutConfig.default(env={"VILLAGE_TIMEOUT_READ": value})
        assert timeout.read == 30.0
        assert "VILLAGE_TIMEOUT_READ" in caplog.text


class TestClientConfig:
    def test_defaults(self):
        config = ClientConfig()
        assert config.base_url == DEFAULT_BASE_URL
        assert config.session_file is None

    def test_invalid_base_url_raises(self):
        with pytest.raises(ConfigError):
            ClientConfig(base_url="localhost:3000")

    def test_session_file_becomes_path(self):
        assert ClientConfig(session_file="s.json").session_file == Path("s.json")

    def test_from_env(self, tmp_path):
        env = {
            "VILLAGE_API_BASE_URL": "https://api.village.test/",
            "VILLAGE_SESSION_FILE": str(tmp_path / "session.json"),
            "VILLAGE_TIMEOUT_POOL": "5",
        }
        config = ClientConfig.from_env(env)
        assert config.base_url == "https://api.village.test"
        assert config.session_file == tmp_path / "session.json"
        assert config.timeout.pool == 5.0

    def test_explicit_arguments_win(self, tmp_path):
        env = {"VILLAGE_API_BASE_URL": "https://env.village.test"}
        config = ClientConfig.from_env(
            env, base_url="https://cli.village.test", session_file=tmp_path / "cli.json"
        )
        assert config.base_url == "https://cli.village.test"
        assert config.session_file == tmp_path / "cli.json"

    def test_from_env_defaults_session_to_working_directory(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        config = ClientConfig.from_env({})
        assert config.base_url == DEFAULT_BASE_URL
        assert config.session_file == tmp_path / "session.json"


def test_paths(tmp_path):
    logs = get_logs_dir(tmp_path)
    assert logs == tmp_path / "logs"
    assert logs.is_dir()
    assert get_session_file(tmp_path) == tmp_path / "session.json"
