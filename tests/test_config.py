"""Tests for configuration loading."""

from __future__ import annotations

from pathlib import Path

import pytest

from depscout.config import expand_env_vars, find_config_file, load_config
from depscout.constants import DEFAULT_HTTP_TIMEOUT_SECONDS
from depscout.exceptions import ConfigError


class TestExpandEnvVars:
    """Tests for environment variable expansion."""

    def test_braced_and_bare(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("REGISTRY_HOST", "npm.internal")

        assert expand_env_vars("https://${REGISTRY_HOST}/") == "https://npm.internal/"
        assert expand_env_vars("$REGISTRY_HOST") == "npm.internal"

    def test_unset_left_unchanged(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.delenv("DEPSCOUT_UNSET_VAR", raising=False)

        assert expand_env_vars("${DEPSCOUT_UNSET_VAR}") == "${DEPSCOUT_UNSET_VAR}"

    def test_nested(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("HOST", "a.com")

        assert expand_env_vars({"rules": [{"host": "$HOST", "enabled": False}]}) == {
            "rules": [{"host": "a.com", "enabled": False}]
        }


class TestLoadConfig:
    """Tests for reading .depscout.yaml."""

    def test_defaults_without_file(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.chdir(tmp_path)

        config = load_config()

        assert config.cache.enabled is True
        assert config.cache.default_ttl_minutes == 15
        assert config.cache_private_packages is False
        assert config.host_rules == []

    def test_full_file(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("PRIVATE_REGISTRY", "npm.internal.example.com")
        config_file = tmp_path / ".depscout.yaml"
        config_file.write_text(
            """
cache:
  ttl_days: 2
  ttl_overrides:
    npm: 60
cache_private_packages: true
host_rules:
  - host: ${PRIVATE_REGISTRY}
    enabled: false
http:
  timeout_seconds: 5
metadata_overrides:
  source_urls:
    npm:
      left-pad: https://github.com/left-pad/left-pad
"""
        )

        config = load_config(config_file)

        assert config.cache.default_ttl_minutes == 2 * 24 * 60
        assert config.cache.ttl_overrides == {"npm": 60}
        assert config.cache_private_packages is True
        assert config.is_host_disabled("npm.internal.example.com")
        assert config.is_host_disabled("mirror.npm.internal.example.com")
        assert not config.is_host_disabled("registry.npmjs.org")
        assert config.http.timeout_seconds == 5
        assert config.metadata_overrides.source_urls["npm"]["left-pad"].startswith("https://")

    def test_found_in_parent_directory(
        self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        (tmp_path / ".depscout.yaml").write_text("cache_private_packages: true\n")
        nested = tmp_path / "a" / "b"
        nested.mkdir(parents=True)
        monkeypatch.chdir(nested)

        assert find_config_file() == tmp_path / ".depscout.yaml"
        assert load_config().cache_private_packages is True

    def test_empty_file(self, tmp_path: Path) -> None:
        config_file = tmp_path / ".depscout.yaml"
        config_file.write_text("")

        assert load_config(config_file).cache.enabled is True

    def test_invalid_yaml(self, tmp_path: Path) -> None:
        config_file = tmp_path / ".depscout.yaml"
        config_file.write_text("cache: [unclosed\n")

        with pytest.raises(ConfigError, match="Invalid YAML"):
            load_config(config_file)

    def test_root_must_be_mapping(self, tmp_path: Path) -> None:
        config_file = tmp_path / ".depscout.yaml"
        config_file.write_text("- just\n- a list\n")

        with pytest.raises(ConfigError, match="must be a mapping"):
            load_config(config_file)

    def test_validation_error(self, tmp_path: Path) -> None:
        config_file = tmp_path / ".depscout.yaml"
        config_file.write_text("cache:\n  ttl_minutes: 0\n")

        with pytest.raises(ConfigError, match="Invalid configuration"):
            load_config(config_file)

    def test_ttl_override_must_be_positive(self, tmp_path: Path) -> None:
        config_file = tmp_path / ".depscout.yaml"
        config_file.write_text("cache:\n  ttl_overrides:\n    npm: 0\n")

        with pytest.raises(ConfigError, match="Invalid configuration"):
            load_config(config_file)

    def test_default_http_timeout(self, tmp_path: Path) -> None:
        config_file = tmp_path / ".depscout.yaml"
        config_file.write_text("cache_private_packages: false\n")

        assert load_config(config_file).http.timeout_seconds == DEFAULT_HTTP_TIMEOUT_SECONDS
