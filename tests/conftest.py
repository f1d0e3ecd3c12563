import collector_log
import pytest


@pytest.fixture(autouse=True)
def isolated_collector_log(tmp_path, monkeypatch):
    log_file = tmp_path / "collector_log.txt"
    monkeypatch.setattr(collector_log, "LOG_FILE_COLLECTOR", str(log_file))
    monkeypatch.delenv("DEBUG", raising=False)
    return log_file
