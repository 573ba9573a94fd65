import argparse
import logging
import sys
from pathlib import Path

from .build import BuildOrchestrator
from .config import load_config
from .constants import DEFAULT_ARTIFACTS_DIR, DEFAULT_POLL_INTERVAL
from .errors import WextError
from .file_filter import FileFilter
from .version import __version__


log = logging.getLogger(__name__)

KNOWN_COMMANDS = {"build", "help"}


def build_parser() -> tuple[argparse.ArgumentParser, dict[str, argparse.ArgumentParser]]:
    parser = argparse.ArgumentParser(
        prog="wextpack",
        description="Package a web extension source directory into a versioned zip",
        formatter_class=argparse.RawTextHelpFormatter,
        epilog="""
Examples:
  wextpack .                              # Same as: wextpack build .
  wextpack build ./src -a ./dist
  wextpack build ./src --as-needed        # Rebuild whenever sources change
  wextpack build . -i "docs/**" "*.md"
        """,
    )
    parser.add_argument(
        "-V", "--version", action="version", version=f"wextpack {__version__}"
    )

    subparsers = parser.add_subparsers(dest="command", metavar="COMMAND")

    # Defaults are None so unset flags fall through to env/config values.
    build_cmd = subparsers.add_parser(
        "build",
        help="Create an extension package from source",
        formatter_class=argparse.RawTextHelpFormatter,
    )
    build_cmd.add_argument(
        "source_dir",
        nargs="?",
        default=".",
        help="Web extension source directory (default: .)",
    )
    build_cmd.add_argument(
        "-a", "--artifacts-dir",
        default=None,
        help=f"Directory for the built package (default: ./{DEFAULT_ARTIFACTS_DIR})",
    )
    build_cmd.add_argument(
        "--as-needed",
        action="store_true",
        default=None,
        help="Watch for file changes and rebuild as needed",
    )
    build_cmd.add_argument(
        "-i", "--ignore-files",
        nargs="*",
        default=None,
        metavar="PATTERN",
        help="Extra glob patterns to leave out of the package",
    )
    build_cmd.add_argument(
        "--no-ready-message",
        dest="show_ready_message",
        action="store_false",
        default=None,
        help="Do not log the final 'ready' message",
    )
    build_cmd.add_argument(
        "--config",
        default=None,
        metavar="FILE",
        help="YAML config file (default: <source_dir>/wextpack.yml if present)",
    )
    build_cmd.add_argument(
        "--log-level",
        default=None,
        choices=["CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG"],
        help="Logging level (default: INFO)",
    )

    help_cmd = subparsers.add_parser(
        "help",
        help="Show help for commands",
    )
    help_cmd.add_argument(
        "topic",
        nargs="?",
        choices=["build"],
        help="Command name",
    )

    return parser, {"build": build_cmd, "help": help_cmd}


def _normalize_legacy_args(argv: list[str]) -> list[str]:
    if not argv:
        return ["build"]
    first = argv[0]
    if first in KNOWN_COMMANDS:
        return argv
    if first in {"-h", "--help", "-V", "--version"}:
        return argv
    return ["build", *argv]


def _configure_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(message)s",
        stream=sys.stdout,
    )


def _pick(*values, default=None):
    for value in values:
        if value is not None:
            return value
    return default


def _run_build(args: argparse.Namespace, config) -> int:
    source_dir = Path(args.source_dir).resolve()
    if not source_dir.is_dir():
        log.error("Error: '%s' is not a directory", args.source_dir)
        return 1

    artifacts_dir = Path(_pick(
        args.artifacts_dir,
        config.artifacts_dir,
        default=Path.cwd() / DEFAULT_ARTIFACTS_DIR,
    )).resolve()
    as_needed = bool(_pick(args.as_needed, config.as_needed, default=False))
    ignore_files = _pick(args.ignore_files, config.ignore_files, default=[])

    file_filter = FileFilter(source_dir, ignore_files=ignore_files, artifacts_dir=artifacts_dir)
    orchestrator = BuildOrchestrator(
        source_dir,
        artifacts_dir,
        file_filter=file_filter,
        show_ready_message=bool(_pick(args.show_ready_message, config.show_ready_message, default=True)),
        poll_interval=float(_pick(config.poll_interval, default=DEFAULT_POLL_INTERVAL)),
    )

    try:
        orchestrator.build(as_needed=as_needed)
    except WextError as e:
        log.error("Error: %s", e)
        return 1

    if not as_needed:
        return 0

    try:
        orchestrator.wait()
    except KeyboardInterrupt:
        orchestrator.stop()
        log.info("")
        log.info("Stopped watching %s", source_dir)
        return 130
    return 0


def _run_help(
    args: argparse.Namespace,
    parser: argparse.ArgumentParser,
    commands: dict[str, argparse.ArgumentParser],
) -> int:
    if args.topic:
        commands[args.topic].print_help()
    else:
        parser.print_help()
    return 0


def main(argv: list[str] | None = None) -> int:
    raw_args = sys.argv[1:] if argv is None else argv
    parser, commands = build_parser()
    args = parser.parse_args(_normalize_legacy_args(raw_args))

    if args.command == "help":
        return _run_help(args, parser, commands)

    try:
        config = load_config(args.config, source_dir=args.source_dir)
    except WextError as e:
        _configure_logging(args.log_level or "INFO")
        log.error("Error: %s", e)
        return 1

    _configure_logging(_pick(args.log_level, config.log_level, default="INFO"))
    return _run_build(args, config)


if __name__ == "__main__":
    sys.exit(main())
