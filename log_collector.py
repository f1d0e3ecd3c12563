#!/usr/bin/env python3
# Filename: log_collector.py
#
# Collects information and logs that are useful for support of Kubernetes
# nodes and hands them to an upload sink. These log bundles are especially
# useful for troubleshooting failures of networking or kubernetes daemons.
import argparse
import sys

import config_handler
import log_manifest
from archive_builder import build_archive_with_report
from collector_log import log_collector_error, log_progress
from scratch_area import (CollectionTerminated, ScratchAreaUnavailable, UnsafeCleanupRefused,
                          acquire_scratch_area, terminate_on_signals)
from uploader import hand_off, make_upload_sink, upload_bundle

EXIT_OK = 0
EXIT_SCRATCH_UNAVAILABLE = 1
EXIT_UPLOAD_FAILED = 1
EXIT_INVALID_SETTINGS = 2
EXIT_COLLECTION_FAILED = 3
EXIT_UNSAFE_CLEANUP = 255


def exit_code_for_signal(signum):
    return 128 + int(signum)


def human_size(num_bytes):
    size = float(num_bytes)
    for unit in ("B", "K", "M"):
        if size < 1024:
            return f"{size:.0f}{unit}" if unit == "B" else f"{size:.1f}{unit}"
        size /= 1024
    return f"{size:.1f}G"


def collect_logs(settings, producers=None, upload_sink=None, upload=True):
    """
    Runs one collection: scratch area, archive, hand-off, upload.

    The scratch area (and the archive inside it) is removed before this
    returns unless settings["debug"] is set; the hand-off copy stays.
    Returns the BuildResult with an extra `uploaded` attribute
    (True/False, or None when the upload step was skipped).
    """
    if producers is None:
        producers = log_manifest.default_producers(timeout=settings.get("producer_timeout_seconds"))

    with acquire_scratch_area(settings.get("temp_root"), debug=settings.get("debug", False)) as area:
        result = build_archive_with_report(producers, settings["candidate_globs"], settings["max_size_bytes"],
                                           area.path, archive_name=settings["archive_name"])
        result.uploaded = None
        log_progress(f"Log bundle size: {human_size(result.size_bytes)}\t{result.archive_path}")

        if upload:
            try:
                handoff_path = hand_off(result.archive_path, settings["handoff_path"])
            except OSError as e:
                log_collector_error(f"Could not copy log bundle to {settings['handoff_path']}: {e}")
                result.uploaded = False
            else:
                sink = upload_sink or make_upload_sink(settings)
                result.uploaded = upload_bundle(sink, handoff_path)

    log_progress("Log collection finished.")
    return result


def build_parser():
    parser = argparse.ArgumentParser(description="Collect node diagnostics into a size-bounded zip and upload it.")
    parser.add_argument("--config", help="Path to a JSON settings file (overrides the default config.json).")
    parser.add_argument("--max-size", type=int, help="Maximum archive size in bytes.")
    parser.add_argument("--debug", action="store_true", help="Leave the temporary working directory behind.")
    parser.add_argument("--no-upload", action="store_true", help="Build the archive but skip hand-off and upload.")
    parser.add_argument("--handoff-path", help="Where to copy the finished archive for the upload sink.")
    parser.add_argument("--temp-root", help="Directory in which to create the temporary working directory.")
    return parser


def settings_from_args(args):
    settings = config_handler.load_settings(args.config)
    if args.max_size is not None:
        settings["max_size_bytes"] = args.max_size
    if args.debug:
        settings["debug"] = True
    if args.handoff_path:
        settings["handoff_path"] = args.handoff_path
    if args.temp_root:
        settings["temp_root"] = args.temp_root
    return settings


def main(argv=None, producers=None, upload_sink=None):
    parser = build_parser()
    args = parser.parse_args(argv)
    if args.max_size is not None and args.max_size <= 0:
        parser.error("--max-size must be a positive number of bytes")
    settings = settings_from_args(args)
    problems = config_handler.validate_settings(settings)
    if problems:
        for problem in problems:
            log_collector_error(f"Invalid settings: {problem}")
        return EXIT_INVALID_SETTINGS

    try:
        with terminate_on_signals():
            collect_logs(settings, producers=producers, upload_sink=upload_sink, upload=not args.no_upload)
    except ScratchAreaUnavailable as e:
        log_collector_error(str(e))
        return EXIT_SCRATCH_UNAVAILABLE
    except UnsafeCleanupRefused as e:
        log_collector_error(str(e))
        return EXIT_UNSAFE_CLEANUP
    except CollectionTerminated as e:
        log_collector_error(f"Log collection interrupted: {e}")
        return exit_code_for_signal(e.signum)
    except Exception as e:
        log_collector_error(f"Log collection failed: {e}")
        return EXIT_COLLECTION_FAILED
    return EXIT_OK


def upload_main(argv=None, upload_sink=None):
    """Re-runs the upload sink against an archive already at the hand-off path."""
    parser = argparse.ArgumentParser(description="Upload an existing log bundle.")
    parser.add_argument("--config", help="Path to a JSON settings file.")
    parser.add_argument("--handoff-path", help="Archive to upload.")
    args = parser.parse_args(argv)
    settings = config_handler.load_settings(args.config)
    handoff_path = args.handoff_path or settings["handoff_path"]
    sink = upload_sink or make_upload_sink(settings)
    return EXIT_OK if upload_bundle(sink, handoff_path) else EXIT_UPLOAD_FAILED


if __name__ == "__main__":
    sys.exit(main())
