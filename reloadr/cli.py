import argparse
import logging
import shlex
import sys
from typing import List, Optional

from pydantic import ValidationError

from .config import ReloadrConfig
from .constants import VERSION
from .logging_ import setup_logging
from .orchestrator import Reloadr
from .responders import RecordingResponder

log = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="reloadr",
        description="Rebuild and restart a program whenever its source files change.",
        epilog="Anything after -- is used as the command that runs the program.",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {VERSION}")
    parser.add_argument("--path", dest="watch_path", help="Directory to watch (default: .)")
    parser.add_argument(
        "--ext",
        dest="watch_exts",
        action="append",
        metavar="EXT",
        help="File extension to watch, e.g. .go (repeatable)",
    )
    parser.add_argument("--debounce-ms", type=int, help="Debounce window in milliseconds (default: 250)")
    parser.add_argument("--build-cmd", help='Build command (default: "go install")')
    parser.add_argument("--build-dir", help="Directory to run the build in (default: current directory)")
    parser.add_argument("--name", dest="app_name", help="Program name (default: current directory name)")
    parser.add_argument("--config", help="JSON config file; command-line flags take precedence")
    parser.add_argument(
        "--watch-only",
        action="store_true",
        help="Only report changes, never build or run anything",
    )
    parser.add_argument("--log-level", default="INFO", choices=["DEBUG", "INFO", "WARNING", "ERROR"])
    parser.add_argument("--log-file", help="Also write logs to this file (rotated)")
    parser.add_argument("run_command", nargs=argparse.REMAINDER, help=argparse.SUPPRESS)
    return parser


def config_from_args(args: argparse.Namespace) -> ReloadrConfig:
    run_command = args.run_command
    if run_command and run_command[0] == "--":
        run_command = run_command[1:]

    overrides = {
        "app_name": args.app_name,
        "watch_path": args.watch_path,
        "watch_exts": args.watch_exts,
        "debounce_ms": args.debounce_ms,
        "build_command": shlex.split(args.build_cmd) if args.build_cmd else None,
        "build_dir": args.build_dir,
        "run_command": run_command or None,
    }
    if args.config:
        return ReloadrConfig.load(args.config, **overrides)
    return ReloadrConfig(**{k: v for k, v in overrides.items() if v is not None})


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    setup_logging(args.log_level, args.log_file)

    try:
        config = config_from_args(args)
    except (ValidationError, OSError) as e:
        parser.error(str(e))

    if args.watch_only:
        reloadr = Reloadr(config, responder=RecordingResponder(stop_on_error=True), build_on_start=False)
    else:
        reloadr = Reloadr(config)

    error = reloadr.start()
    if args.watch_only:
        log.info("%d change(s) detected", len(reloadr.responder.changes))
    return 1 if error is not None else 0


if __name__ == "__main__":
    sys.exit(main())
