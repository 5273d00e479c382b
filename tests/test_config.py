"""Tests for perch.config — sources, precedence, validation, read-only access."""

import json
import logging

import pytest

from conftest import make_config, write_config
from perch.config import PodletConfig, Setting, flatten, load_config
from perch.errors import ConfigurationError


class TestDefaults:
    def test_schema_defaults(self, tmp_path) -> None:
        config = make_config(tmp_path)
        assert config.get("app.name") == "cart"
        assert config.get("app.mode") == "hydrate"
        assert config.get("app.grace") == 0
        assert config.get("podlet.manifest") == "/manifest.json"
        assert config.get("podlet.content") == "/"
        assert config.get("podlet.fallback") == ""
        assert config.get("metrics.enabled") is True
        assert config.get("assets.base") == "/static"

    def test_local_env_means_development(self, tmp_path) -> None:
        assert make_config(tmp_path).get("app.development") is True
        assert make_config(tmp_path, ENV="prod").get("app.development") is False

    def test_version_defaults_to_timestamp(self, tmp_path) -> None:
        version = make_config(tmp_path).get("podlet.version")
        assert version.isdigit()

    def test_name_from_pyproject(self, tmp_path) -> None:
        (tmp_path / "pyproject.toml").write_text('[project]\nname = "shopping_Cart"\n')
        config = load_config(tmp_path, environ={})
        assert config.get("app.name") == "shopping-cart"

    def test_fallback_path_when_fallback_source_exists(self, tmp_path) -> None:
        (tmp_path / "fallback.py").write_text("")
        assert make_config(tmp_path).get("podlet.fallback") == "/fallback"


class TestPrecedence:
    def test_sources_layer_in_order(self, tmp_path) -> None:
        write_config(tmp_path, {"app": {"port": 3000, "grace": 2}})
        domain_dir = tmp_path / "config" / "domains" / "example.com"
        domain_dir.mkdir(parents=True)
        (domain_dir / "config.prod.json").write_text(json.dumps({"app": {"port": 4000}}))

        config = make_config(tmp_path, ENV="prod", DOMAIN="example.com")
        assert config.get("app.grace") == 2
        assert config.get("app.port") == 4000

        config = make_config(tmp_path, ENV="prod", DOMAIN="example.com", PORT="5000")
        assert config.get("app.port") == 5000

        config = load_config(
            tmp_path,
            environ={"APP_NAME": "cart", "ENV": "prod", "DOMAIN": "example.com", "PORT": "5000"},
            args={"port": "6000"},
        )
        assert config.get("app.port") == 6000

    def test_file_overrides_derived_development(self, tmp_path) -> None:
        write_config(tmp_path, {"app": {"development": False}})
        assert make_config(tmp_path).get("app.development") is False

    def test_args_select_override_file(self, tmp_path) -> None:
        domain_dir = tmp_path / "config" / "domains" / "localhost"
        domain_dir.mkdir(parents=True)
        (domain_dir / "config.test.json").write_text(json.dumps({"app": {"mode": "ssr-only"}}))

        config = load_config(tmp_path, environ={"APP_NAME": "cart"}, args={"env": "test"})
        assert config.get("app.mode") == "ssr-only"

    def test_environment_strings_are_coerced(self, tmp_path) -> None:
        config = make_config(tmp_path, DEVELOPMENT="false", PORT="9000")
        assert config.get("app.development") is False
        assert config.get("app.port") == 9000


class TestValidation:
    def test_missing_name(self, tmp_path) -> None:
        with pytest.raises(ConfigurationError, match="app.name: must be set"):
            load_config(tmp_path, environ={})

    @pytest.mark.parametrize("name", ["Cart", "cart1", "my_cart"])
    def test_invalid_name(self, tmp_path, name) -> None:
        with pytest.raises(ConfigurationError, match="app.name"):
            load_config(tmp_path, environ={"APP_NAME": name})

    def test_invalid_mode(self, tmp_path) -> None:
        write_config(tmp_path, {"app": {"mode": "islands"}})
        with pytest.raises(ConfigurationError, match="app.mode"):
            make_config(tmp_path)

    def test_negative_grace(self, tmp_path) -> None:
        write_config(tmp_path, {"app": {"grace": -1}})
        with pytest.raises(ConfigurationError, match="app.grace"):
            make_config(tmp_path)

    def test_reports_every_error(self, tmp_path) -> None:
        write_config(tmp_path, {"app": {"mode": "nope", "port": 70000}})
        with pytest.raises(ConfigurationError) as exc_info:
            make_config(tmp_path)
        message = str(exc_info.value)
        assert "app.mode" in message
        assert "app.port" in message

    def test_unparseable_file(self, tmp_path) -> None:
        (tmp_path / "config").mkdir()
        (tmp_path / "config" / "common.json").write_text("{not json")
        with pytest.raises(ConfigurationError, match="Cannot parse"):
            make_config(tmp_path)

    def test_unknown_file_keys_are_ignored_with_warning(self, tmp_path, caplog) -> None:
        write_config(tmp_path, {"app": {"colour": "blue"}})
        with caplog.at_level(logging.WARNING, logger="perch.config"):
            config = make_config(tmp_path)
        assert "app.colour" not in config
        assert "app.colour" in caplog.text


class TestUserSchema:
    def test_extends_schema(self, tmp_path) -> None:
        (tmp_path / "config").mkdir()
        (tmp_path / "config" / "schema.py").write_text(
            "from perch.config import Setting, boolean\n"
            "SCHEMA = {\n"
            '    "db.url": Setting("sqlite://", env="DB_URL"),\n'
            '    "feature.beta": Setting(False, boolean),\n'
            "}\n"
        )
        write_config(tmp_path, {"feature": {"beta": True}})

        config = make_config(tmp_path, DB_URL="postgres://db")
        assert config.get("db.url") == "postgres://db"
        assert config.get("feature.beta") is True

    def test_rejects_non_setting_values(self, tmp_path) -> None:
        (tmp_path / "config").mkdir()
        (tmp_path / "config" / "schema.py").write_text('SCHEMA = {"db.url": "sqlite://"}\n')
        with pytest.raises(ConfigurationError, match="Setting"):
            make_config(tmp_path)

    def test_import_failure_is_fatal(self, tmp_path) -> None:
        (tmp_path / "config").mkdir()
        (tmp_path / "config" / "schema.py").write_text("raise RuntimeError('broken')\n")
        with pytest.raises(ConfigurationError, match="broken"):
            make_config(tmp_path)


class TestPodletConfig:
    def test_read_only(self, tmp_path) -> None:
        config = make_config(tmp_path)
        with pytest.raises(AttributeError):
            config.mode = "csr-only"  # type: ignore[attr-defined]

    def test_unknown_key_raises(self, tmp_path) -> None:
        config = make_config(tmp_path)
        with pytest.raises(KeyError, match="app.moed"):
            config.get("app.moed")

    def test_mapping_access(self, tmp_path) -> None:
        config = make_config(tmp_path)
        assert config["app.name"] == "cart"
        assert "metrics.timing.enabled" in config
        assert dict(config.as_dict()) == {key: config[key] for key in config}

    def test_doc(self) -> None:
        config = PodletConfig({"app.mode": "hydrate"})
        assert "Render mode" in config.doc("app.mode")
        assert config.doc("nope") == ""

    def test_setting_is_frozen(self) -> None:
        setting = Setting("x")
        with pytest.raises(AttributeError):
            setting.default = "y"  # type: ignore[misc]


class TestFlatten:
    def test_nested(self) -> None:
        assert flatten({"app": {"mode": "csr-only", "x": {"y": 1}}}) == {
            "app.mode": "csr-only",
            "app.x.y": 1,
        }

    def test_already_dotted(self) -> None:
        assert flatten({"app.mode": "ssr-only"}) == {"app.mode": "ssr-only"}
