import pytest

from src.contextflow.core.config_loader import clear_config_cache


@pytest.fixture(autouse=True)
def _isolated_config(monkeypatch: pytest.MonkeyPatch, tmp_path):
    # Point config at a file that does not exist unless a test writes it.
    monkeypatch.setenv("CONTEXTFLOW_CONFIG_PATH", str(tmp_path / "config.json"))
    clear_config_cache()
    yield
    clear_config_cache()
