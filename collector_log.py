# Filename: collector_log.py
import os
import sys
import traceback
from datetime import datetime

# Same directory as the hand-off copy of the bundle.
LOG_DIR_COLLECTOR = "/var/lib/waagent/logcollector"
LOG_FILE_COLLECTOR = os.environ.get("AKS_LOG_COLLECTOR_LOG", os.path.join(LOG_DIR_COLLECTOR, "collector_log.txt"))
LOG_FILE_MAX_BYTES = 10 * 1024 * 1024


def _append_to_log_file(line):
    try:
        if os.path.exists(LOG_FILE_COLLECTOR) and os.path.getsize(LOG_FILE_COLLECTOR) > LOG_FILE_MAX_BYTES:
            with open(LOG_FILE_COLLECTOR, "w", encoding="utf-8") as f: f.write(f"[{datetime.now()}] Log truncated.\n")
    except OSError: pass
    try:
        os.makedirs(os.path.dirname(LOG_FILE_COLLECTOR) or ".", exist_ok=True)
        with open(LOG_FILE_COLLECTOR, "a", encoding="utf-8") as f:
            f.write(line)
            exc_type, _, _ = sys.exc_info()
            if exc_type is not None: f.write(traceback.format_exc() + "\n")
    except OSError as e: print(f"CRIT_COLLECTOR_LOG_FAIL: {e}", file=sys.stderr, flush=True)


def log_progress(msg):
    print(msg, flush=True)


def log_warning(msg):
    """Print a warning and keep it in the log file."""
    print(f"WARNING: {msg}", file=sys.stderr, flush=True)
    _append_to_log_file(f"[{datetime.now().strftime('%Y-%m-%d %H:%M:%S')}] WARNING {msg}\n")


def log_collector_error(msg):
    """Print an error and append it, plus any active traceback, to the log file."""
    print(f"ERROR: {msg}", file=sys.stderr, flush=True)
    _append_to_log_file(f"[{datetime.now().strftime('%Y-%m-%d %H:%M:%S')}] ERROR {msg}\n")
