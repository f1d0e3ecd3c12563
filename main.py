#!/usr/bin/env python3
import sys

def run_collect_app(collect_cli_args):
    try: from log_collector import main as collect_main_entry
    except ImportError as e: print(f"ERROR: Import log_collector.main fail: {e}", file=sys.stderr); return 1
    return collect_main_entry(collect_cli_args)

def run_upload_app(upload_cli_args):
    try: from log_collector import upload_main as upload_main_entry
    except ImportError as e: print(f"ERROR: Import log_collector.upload_main fail: {e}", file=sys.stderr); return 1
    return upload_main_entry(upload_cli_args)

def cli(argv=None):
    argv = sys.argv[1:] if argv is None else list(argv)
    if argv and not argv[0].startswith("-"):
        command, args_for_subcommand = argv[0].lower(), argv[1:]
        if command == "collect": return run_collect_app(args_for_subcommand)
        if command == "upload": return run_upload_app(args_for_subcommand)
        print(f"Unknown command: '{argv[0]}'. Expected 'collect' or 'upload'.", file=sys.stderr)
        return 2
    return run_collect_app(argv)

if __name__ == "__main__":
    sys.exit(cli())
