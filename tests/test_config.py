"""Tests for perch.config — AppConfig and the TOML configuration cascade."""

from pathlib import Path

import pytest

from perch.config import AppConfig, load_config
from perch.errors import ConfigurationError


class TestAppConfig:
    def test_defaults(self) -> None:
        cfg = AppConfig()
        assert cfg.host == "127.0.0.1"
        assert cfg.port == 8000
        assert cfg.debug is False
        assert cfg.trust_proxy is False
        assert cfg.max_content_length == 16 * 1024 * 1024
        assert cfg.controller_namespace is None
        assert cfg.controller_suffix == "Controller"
        assert cfg.message_key == "message"
        assert (cfg.default_order_by, cfg.default_direction) == ("id", "ASC")
        assert (cfg.default_limit, cfg.max_limit) == (30, 100)

    def test_override(self) -> None:
        cfg = AppConfig(host="0.0.0.0", port=3000, debug=True)
        assert cfg.host == "0.0.0.0"
        assert cfg.port == 3000
        assert cfg.debug is True

    def test_frozen(self) -> None:
        with pytest.raises(AttributeError):
            AppConfig().debug = True  # type: ignore[misc]


def _write(directory: Path, text: str, name: str = "application") -> Path:
    directory.mkdir(parents=True, exist_ok=True)
    path = directory / f"{name}.toml"
    path.write_text(text)
    return directory


class TestLoadConfig:
    def test_no_directories_gives_defaults(self) -> None:
        assert load_config() == AppConfig()

    def test_missing_files_are_skipped(self, tmp_path: Path) -> None:
        assert load_config(tmp_path / "nowhere") == AppConfig()

    def test_single_file(self, tmp_path: Path) -> None:
        d = _write(tmp_path, 'debug = true\nport = 9000\nmessage_key = "reason"\n')
        cfg = load_config(d)
        assert cfg.debug is True
        assert cfg.port == 9000
        assert cfg.message_key == "reason"

    def test_later_directories_override(self, tmp_path: Path) -> None:
        base = _write(tmp_path / "base", "port = 9000\ndefault_limit = 10\n")
        local = _write(tmp_path / "local", "port = 9100\n")
        cfg = load_config(base, local)
        assert cfg.port == 9100
        assert cfg.default_limit == 10

    def test_base_config(self, tmp_path: Path) -> None:
        d = _write(tmp_path, "port = 9000\n")
        cfg = load_config(d, base=AppConfig(debug=True))
        assert (cfg.debug, cfg.port) == (True, 9000)

    def test_custom_file_name(self, tmp_path: Path) -> None:
        d = _write(tmp_path, "port = 9200\n", name="api")
        assert load_config(d, name="api").port == 9200

    def test_optional_none_field_accepts_value(self, tmp_path: Path) -> None:
        d = _write(tmp_path, 'controller_namespace = "myapp.controllers"\n')
        assert load_config(d).controller_namespace == "myapp.controllers"

    def test_unknown_key(self, tmp_path: Path) -> None:
        d = _write(tmp_path, "colour = 'blue'\n")
        with pytest.raises(ConfigurationError, match="colour"):
            load_config(d)

    def test_type_mismatch(self, tmp_path: Path) -> None:
        d = _write(tmp_path, 'port = "eighty"\n')
        with pytest.raises(ConfigurationError, match="expects int"):
            load_config(d)

    @pytest.mark.parametrize("line", ["port = true", "max_limit = false"])
    def test_bool_is_not_an_int(self, tmp_path: Path, line: str) -> None:
        d = _write(tmp_path, line + "\n")
        with pytest.raises(ConfigurationError, match="expects int, got bool"):
            load_config(d)

    def test_int_is_not_a_bool(self, tmp_path: Path) -> None:
        d = _write(tmp_path, "debug = 1\n")
        with pytest.raises(ConfigurationError, match="expects bool, got int"):
            load_config(d)

    @pytest.mark.parametrize("line", ["controller_namespace = 5", "controller_namespace = ['a', 'b']"])
    def test_optional_field_checks_declared_type(self, tmp_path: Path, line: str) -> None:
        d = _write(tmp_path, line + "\n")
        with pytest.raises(ConfigurationError, match="controller_namespace.*expects str"):
            load_config(d)

    def test_invalid_toml(self, tmp_path: Path) -> None:
        d = _write(tmp_path, "port = = 1\n")
        with pytest.raises(ConfigurationError, match="Invalid configuration file"):
            load_config(d)
