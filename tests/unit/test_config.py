"""Tests for settings loading."""

from __future__ import annotations

from pathlib import Path

import pytest

from hyperapi.config import HyperApiSettings, load_settings
from hyperapi.errors import ConfigurationError
from hyperapi.runtime.app_factory import create_app
from hyperapi.runtime.security import Principal
from hyperapi.specs.resource import Scope

CONFIG = """
[hyperapi]
scan_packages = ["sample_app"]
log_level = "debug"
realm = "books"
output_dir = "build/api"

[hyperapi.tokens.s3cret]
name = "alice"
roles = ["accountant"]

[resources.Tag]
path = "/labels"
scope = "request"
pageable = { limit = 5, max_limit = 10 }
"""


@pytest.fixture
def config_file(tmp_path: Path) -> Path:
    path = tmp_path / "hyperapi.toml"
    path.write_text(CONFIG)
    return path


class TestLoadSettings:
    def test_defaults_without_file(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.chdir(tmp_path)
        settings = load_settings(environ={})
        assert settings == HyperApiSettings()
        assert settings.log_dir == ".hyperapi/logs"
        assert settings.log_level == "INFO"

    def test_file(self, config_file: Path) -> None:
        settings = load_settings(config_file, environ={})
        assert settings.scan_packages == ["sample_app"]
        assert settings.log_level == "DEBUG"
        assert settings.realm == "books"
        tag = settings.resources["Tag"]
        assert tag.path == "/labels"
        assert tag.scope == Scope.REQUEST
        assert tag.pageable.max_limit == 10

    def test_principals(self, config_file: Path) -> None:
        principals = load_settings(config_file, environ={}).principals()
        assert principals == {"s3cret": Principal(name="alice", roles=frozenset({"accountant"}))}

    def test_environment_overrides(self, config_file: Path) -> None:
        environ = {
            "HYPERAPI_SCAN_PACKAGES": "pkg_a, pkg_b",
            "HYPERAPI_LOG_LEVEL": "warning",
            "HYPERAPI_TOKENS": '{"t": {"name": "bob"}}',
        }
        settings = load_settings(config_file, environ=environ)
        assert settings.scan_packages == ["pkg_a", "pkg_b"]
        assert settings.log_level == "WARNING"
        assert settings.principals() == {"t": Principal(name="bob")}
        assert settings.realm == "books"

    def test_output_path(self, config_file: Path, tmp_path: Path) -> None:
        settings = load_settings(config_file, environ={})
        assert settings.get_output_path(tmp_path) == tmp_path / "build" / "api"
        absolute = settings.model_copy(update={"output_dir": str(tmp_path / "abs")})
        assert absolute.get_output_path(Path("/elsewhere")) == tmp_path / "abs"


class TestLoadErrors:
    def test_missing_explicit_file(self, tmp_path: Path) -> None:
        with pytest.raises(ConfigurationError, match="Config file not found"):
            load_settings(tmp_path / "nope.toml", environ={})

    def test_invalid_toml(self, tmp_path: Path) -> None:
        path = tmp_path / "hyperapi.toml"
        path.write_text("[hyperapi\n")
        with pytest.raises(ConfigurationError, match="Invalid"):
            load_settings(path, environ={})

    def test_unknown_resource_key(self, tmp_path: Path) -> None:
        path = tmp_path / "hyperapi.toml"
        path.write_text('[resources.Tag]\npaht = "/typo"\n')
        with pytest.raises(ConfigurationError, match="Invalid settings"):
            load_settings(path, environ={})

    def test_invalid_token_json(self, config_file: Path) -> None:
        with pytest.raises(ConfigurationError, match="HYPERAPI_TOKENS is not valid JSON"):
            load_settings(config_file, environ={"HYPERAPI_TOKENS": "{nope"})


class TestAppFromSettings:
    def test_scan_applies_resource_tables(self, config_file: Path) -> None:
        app = create_app(load_settings(config_file, environ={}))
        context = app.state.hyperapi
        spec = context.registry.resolve("tag").spec
        assert spec.base_path == "/labels"
        assert spec.pagination.default_limit == 5
        assert context.enforcer.realm == "books"
        assert len(context.registry) == 5
