# Filename: snapshot_producers.py
import glob
import json
import os
import shutil
import subprocess
import time
from pathlib import Path

import psutil

from collector_log import log_progress, log_warning


class ProducerError(Exception):
    """A snapshot producer failed; whatever it wrote before failing is kept."""


class CommandProducer:
    """Runs one external command with stdout and stderr redirected to a file."""

    def __init__(self, label, cmd, output_name, append=False, timeout=None):
        self.label = label
        self.cmd = cmd
        self.output_name = output_name
        self.append = append
        self.timeout = timeout

    def __repr__(self):
        return f"CommandProducer({self.label!r})"

    def run(self, output_dir: Path):
        output_file = Path(output_dir) / self.output_name
        output_file.parent.mkdir(parents=True, exist_ok=True)
        mode = "a" if self.append else "w"
        try:
            with open(output_file, mode, encoding="utf-8") as f:
                proc = subprocess.run(self.cmd, stdout=f, stderr=subprocess.STDOUT,
                                      timeout=self.timeout, check=False)
        except FileNotFoundError:
            name = self.cmd[0]
            with open(output_file, "a", encoding="utf-8") as f:
                f.write(f"{name} not installed or not found in PATH\n")
            raise ProducerError(f"{name} not installed or not found in PATH")
        except subprocess.TimeoutExpired:
            raise ProducerError(f"timed out after {self.timeout}s")
        if proc.returncode != 0:
            raise ProducerError(f"exited with status {proc.returncode}")


class FileCopyProducer:
    """Copies a fixed list of files (glob patterns allowed) into a subdirectory."""

    def __init__(self, label, sources, dest_subdir):
        self.label = label
        self.sources = list(sources)
        self.dest_subdir = dest_subdir

    def __repr__(self):
        return f"FileCopyProducer({self.label!r})"

    def run(self, output_dir: Path):
        dest = Path(output_dir) / self.dest_subdir
        dest.mkdir(parents=True, exist_ok=True)
        failures = []
        for pattern in self.sources:
            matches = sorted(glob.glob(pattern))
            if not matches:
                failures.append(f"{pattern}: no such file")
                continue
            for src in matches:
                try:
                    # /proc files report st_size 0, so read them as a stream
                    with open(src, "rb") as fsrc, open(dest / os.path.basename(src), "wb") as fdst:
                        shutil.copyfileobj(fsrc, fdst)
                except OSError as e:
                    failures.append(f"{src}: {e}")
        if failures:
            raise ProducerError("; ".join(failures))


class TreeCopyProducer:
    """Copies the readable regular files below a directory."""

    def __init__(self, label, source_dir, dest_subdir):
        self.label = label
        self.source_dir = source_dir
        self.dest_subdir = dest_subdir

    def __repr__(self):
        return f"TreeCopyProducer({self.label!r})"

    def run(self, output_dir: Path):
        if not os.path.isdir(self.source_dir):
            raise ProducerError(f"{self.source_dir} is not a directory")
        dest_root = Path(output_dir) / self.dest_subdir
        failures = 0
        for foldername, subfolders, filenames in os.walk(self.source_dir):
            subfolders.sort()
            rel = os.path.relpath(foldername, self.source_dir)
            target_dir = dest_root if rel == "." else dest_root / rel
            target_dir.mkdir(parents=True, exist_ok=True)
            for filename in sorted(filenames):
                src = os.path.join(foldername, filename)
                if not os.path.isfile(src):
                    continue
                try:
                    with open(src, "rb") as fsrc, open(target_dir / filename, "wb") as fdst:
                        shutil.copyfileobj(fsrc, fdst)
                except OSError:
                    failures += 1
        if failures:
            raise ProducerError(f"{failures} file(s) under {self.source_dir} could not be read")


class SystemMetricsProducer:
    """Writes a point-in-time psutil snapshot as JSON."""

    def __init__(self, label="system metrics", output_name="system_metrics.json"):
        self.label = label
        self.output_name = output_name

    def __repr__(self):
        return f"SystemMetricsProducer({self.label!r})"

    def run(self, output_dir: Path):
        net = psutil.net_io_counters()
        metrics = {
            "timestamp": time.time(),
            "boot_time": psutil.boot_time(),
            "cpu_count": psutil.cpu_count(),
            "cpu_percent": psutil.cpu_percent(interval=1),
            "load_average": list(psutil.getloadavg()),
            "memory": psutil.virtual_memory()._asdict(),
            "swap": psutil.swap_memory()._asdict(),
            "disk_usage_root": psutil.disk_usage("/")._asdict(),
            "net_bytes_sent": net.bytes_sent if net else None,
            "net_bytes_recv": net.bytes_recv if net else None,
        }
        output_file = Path(output_dir) / self.output_name
        output_file.parent.mkdir(parents=True, exist_ok=True)
        with open(output_file, "w", encoding="utf-8") as f:
            json.dump(metrics, f, indent=2)


def run_producers(producers, output_dir: Path) -> dict:
    """
    Runs every producer against output_dir, one after another.

    Failures are logged and recorded in the returned mapping (label -> error
    message, or None on success); they never stop the remaining producers.
    """
    output_dir = Path(output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)
    outcomes = {}
    for producer in producers:
        try:
            producer.run(output_dir)
            outcomes[producer.label] = None
        except (ProducerError, OSError, subprocess.SubprocessError, psutil.Error) as e:
            log_warning(f"Snapshot '{producer.label}' failed: {e}")
            outcomes[producer.label] = str(e)
        except Exception as e:
            log_warning(f"Snapshot '{producer.label}' raised unexpectedly: {e!r}")
            outcomes[producer.label] = repr(e)
    failed = sum(1 for err in outcomes.values() if err is not None)
    log_progress(f"Ran {len(outcomes)} snapshot producer(s), {failed} reported a failure.")
    return outcomes
