# Filename: uploader.py
import os
import shutil
import subprocess
from pathlib import Path

import requests

from collector_log import log_collector_error, log_progress


def hand_off(archive_path, handoff_path) -> Path:
    """Copies the finished archive to the location the upload sink reads from."""
    handoff_path = Path(handoff_path)
    handoff_path.parent.mkdir(parents=True, exist_ok=True)
    shutil.copyfile(archive_path, handoff_path)
    return handoff_path


class CommandUploadSink:
    """Runs an external upload program that reads the hand-off archive itself."""

    def __init__(self, cmd, timeout=None):
        self.cmd = list(cmd)
        self.timeout = timeout

    def __repr__(self):
        return f"CommandUploadSink({self.cmd!r})"

    def upload(self, handoff_path):
        try:
            proc = subprocess.run(self.cmd, timeout=self.timeout, check=False)
        except FileNotFoundError:
            log_collector_error(f"Upload command not found: {self.cmd[0]}")
            return False
        except subprocess.TimeoutExpired:
            log_collector_error(f"Upload command timed out after {self.timeout}s: {' '.join(self.cmd)}")
            return False
        if proc.returncode != 0:
            log_collector_error(f"Upload command exited with status {proc.returncode}: {' '.join(self.cmd)}")
            return False
        return True


class HttpUploadSink:
    """PUTs the hand-off archive to an HTTP endpoint."""

    def __init__(self, url, headers=None, timeout=300):
        self.url = url
        self.headers = dict(headers or {})
        self.timeout = timeout

    def __repr__(self):
        return f"HttpUploadSink({self.url!r})"

    def upload(self, handoff_path):
        headers = {"Content-Type": "application/zip"}
        headers.update(self.headers)
        response_obj = None
        try:
            with open(handoff_path, "rb") as f:
                response_obj = requests.put(self.url, data=f, headers=headers, timeout=self.timeout)
            response_obj.raise_for_status()
            return True
        except requests.exceptions.Timeout:
            log_collector_error(f"Upload to {self.url} timed out ({self.timeout}s)")
        except requests.exceptions.HTTPError as http_err:
            status = response_obj.status_code if response_obj is not None else None
            body = response_obj.text[:500] if response_obj is not None else "N/A"
            log_collector_error(f"Upload HTTP error: {http_err} - Status: {status} - Resp: {body}")
        except requests.exceptions.RequestException as req_err:
            log_collector_error(f"Upload request error for {self.url}: {req_err}")
        except OSError as e:
            log_collector_error(f"Could not read {handoff_path} for upload: {e}")
        return False


def make_upload_sink(settings):
    if settings.get("upload_url"):
        return HttpUploadSink(settings["upload_url"], headers=settings.get("upload_headers"),
                              timeout=settings.get("upload_timeout_seconds", 300))
    return CommandUploadSink(settings["upload_command"], timeout=settings.get("upload_timeout_seconds"))


def upload_bundle(sink, handoff_path):
    """Invokes the sink once. The result is reported, never raised."""
    log_progress(f"Uploading log bundle {handoff_path} via {sink!r}...")
    if not os.path.isfile(handoff_path):
        log_collector_error(f"No log bundle at {handoff_path}; nothing to upload.")
        return False
    ok = sink.upload(handoff_path)
    log_progress("Upload succeeded." if ok else "Upload failed.")
    return ok
