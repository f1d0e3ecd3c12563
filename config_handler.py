# Filename: config_handler.py
import json
import os
from pathlib import Path

import log_manifest
from collector_log import log_collector_error, log_warning

PROJECT_ROOT = Path(__file__).resolve().parent
CONFIG_FILE_PATH = Path(os.environ.get("AKS_LOG_COLLECTOR_CONFIG", PROJECT_ROOT / "config.json"))

# Log bundle upload max size is limited to 100MB
DEFAULT_MAX_SIZE_BYTES = 104857600

DEFAULT_SETTINGS = {
    "max_size_bytes": DEFAULT_MAX_SIZE_BYTES,
    "archive_name": "aks_logs.zip",
    "handoff_path": "/var/lib/waagent/logcollector/logs.zip",
    "upload_command": ["/usr/bin/env", "python3", "/opt/azure/containers/aks-log-collector-send.py"],
    "upload_url": None,
    "upload_headers": {},
    "upload_timeout_seconds": 300,
    "producer_timeout_seconds": None,
    "temp_root": None,
    "debug": False,
    "candidate_globs": list(log_manifest.CANDIDATE_GLOBS),
}


def debug_requested_by_env():
    return os.environ.get("DEBUG") == "1"


def load_settings(config_path=None):
    """
    Loads settings from config_path (CONFIG_FILE_PATH when not given), merged
    over DEFAULT_SETTINGS. A missing or unreadable file yields the defaults.
    """
    config_path = Path(config_path) if config_path else CONFIG_FILE_PATH
    settings = json.loads(json.dumps(DEFAULT_SETTINGS))
    if os.path.exists(config_path):
        try:
            with open(config_path, "r", encoding="utf-8") as f:
                loaded = json.load(f)
            if isinstance(loaded, dict):
                settings.update(loaded)
            else:
                log_warning(f"Ignoring {config_path}: expected a JSON object, got {type(loaded).__name__}")
        except (OSError, json.JSONDecodeError) as e:
            log_collector_error(f"Could not load {config_path}: {e}")
    if debug_requested_by_env():
        settings["debug"] = True
    return settings


def validate_settings(settings):
    """Returns a list of problems that would stop a collection run; empty when the settings are usable."""
    problems = []
    max_size = settings.get("max_size_bytes")
    if isinstance(max_size, bool) or not isinstance(max_size, int) or max_size <= 0:
        problems.append(f"max_size_bytes must be a positive integer number of bytes, got {max_size!r}")
    globs = settings.get("candidate_globs")
    if not isinstance(globs, list) or not all(isinstance(g, str) for g in globs):
        problems.append(f"candidate_globs must be a list of glob patterns, got {globs!r}")
    name = settings.get("archive_name")
    if not isinstance(name, str) or not name or "/" in name or name in (".", ".."):
        problems.append(f"archive_name must be a plain file name, got {name!r}")
    if not isinstance(settings.get("handoff_path"), str) or not settings.get("handoff_path"):
        problems.append(f"handoff_path must be a file path, got {settings.get('handoff_path')!r}")
    return problems


def save_settings(settings, config_path=None):
    config_path = Path(config_path) if config_path else CONFIG_FILE_PATH
    try:
        config_path.parent.mkdir(parents=True, exist_ok=True)
        with open(config_path, "w", encoding="utf-8") as f:
            json.dump(settings, f, indent=4)
        return True
    except (OSError, TypeError) as e:
        log_collector_error(f"Could not save settings to {config_path}: {e}")
        return False
