from pathlib import Path

import pytest

from binwatch.config import ROOT_DIR, load_config
from binwatch.exceptions import ConfigError


def test_defaults_when_service_file_missing(tmp_path: Path) -> None:
    config = load_config(tmp_path)
    assert config.database.path == (ROOT_DIR / "data" / "binwatch.db").resolve()
    assert config.logging.level == "INFO"
    assert config.dashboard.api_base == "http://localhost:8000"
    assert config.dashboard.reconnect_delay_seconds == 5.0


def test_reads_service_yaml(tmp_path: Path) -> None:
    (tmp_path / "service.yaml").write_text(
        """
database:
  path: /var/lib/binwatch/bins.db
logging:
  level: warning
dashboard:
  api_base: http://bins.local:9000/
  ws_url: ws://bins.local:9000/ws/bins
  request_timeout_seconds: 2
  reconnect_delay_seconds: 1.5
""".strip()
        + "\n",
        encoding="utf-8",
    )

    config = load_config(tmp_path)
    assert config.database.path == Path("/var/lib/binwatch/bins.db")
    assert config.logging.level == "WARNING"
    assert config.dashboard.api_base == "http://bins.local:9000"
    assert config.dashboard.ws_url == "ws://bins.local:9000/ws/bins"
    assert config.dashboard.request_timeout_seconds == 2.0
    assert config.dashboard.reconnect_delay_seconds == 1.5


def test_env_var_selects_directory(monkeypatch, tmp_path: Path) -> None:
    (tmp_path / "service.yaml").write_text("logging:\n  level: ERROR\n", encoding="utf-8")
    monkeypatch.setenv("BINWATCH_CONFIG_DIR", str(tmp_path))
    assert load_config().logging.level == "ERROR"


def test_missing_directory(tmp_path: Path) -> None:
    with pytest.raises(ConfigError):
        load_config(tmp_path / "absent")


def test_rejects_non_mapping_file(tmp_path: Path) -> None:
    (tmp_path / "service.yaml").write_text("- just\n- a list\n", encoding="utf-8")
    with pytest.raises(ConfigError):
        load_config(tmp_path)


def test_rejects_unknown_log_level(tmp_path: Path) -> None:
    (tmp_path / "service.yaml").write_text("logging:\n  level: chatty\n", encoding="utf-8")
    with pytest.raises(ConfigError):
        load_config(tmp_path)


@pytest.mark.parametrize("value", ["soon", "[1, 2]", "true"])
def test_rejects_non_numeric_dashboard_seconds(tmp_path: Path, value: str) -> None:
    (tmp_path / "service.yaml").write_text(
        f"dashboard:\n  reconnect_delay_seconds: {value}\n",
        encoding="utf-8",
    )
    with pytest.raises(ConfigError, match="dashboard.reconnect_delay_seconds must be a number"):
        load_config(tmp_path)
