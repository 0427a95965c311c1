import argparse
from collections.abc import Iterator
from contextlib import contextmanager
import logging
import os
from pathlib import Path
import sys

import voluptuous as vol

from symsize import const
from symsize.config import load_options
from symsize.const import (
    CONF_ADDR2LINE_PATH,
    CONF_LOCATION_TOOL_PATH,
    CONF_NM_PATH,
    CONF_SHOW_DATA,
    CONF_SHOW_TEXT,
    CONF_USE_REGEX_FILTERING,
    CONF_VERIFY_LOCATIONS,
    DEFAULT_DUMP_TOOL,
)
from symsize.core import ErrorKind, SymsizeError
from symsize.helpers import get_bool_env
from symsize.log import AnsiFore, color, setup_log
from symsize.symbols import ReloadCoordinator, find_tool
from symsize.symbols.cli import (
    filter_symbols,
    format_csv,
    format_totals,
    sort_for_display,
)

_LOGGER = logging.getLogger(__name__)

# Messages shown for reload failures, keyed by error kind
FAILURE_MESSAGES = {
    ErrorKind.TARGET_MISSING: (
        "Could not find ELF file. Verify that the build output exists."
    ),
    ErrorKind.TOOL_NOT_FOUND: "nm binary could not be found.",
    ErrorKind.TOOL_EXECUTION_FAILED: "nm failed to list the symbols of the binary.",
}

NO_SYMBOLS_MESSAGE = (
    "No symbols have been loaded. Ensure you are compiling with debug symbols "
    "enabled in your toolchain options."
)


def _dump_tool_path(args, options) -> str:
    # A configured path is used as given so a missing tool is reported
    if configured := args.nm or options.get(CONF_NM_PATH):
        return configured
    return find_tool(DEFAULT_DUMP_TOOL) or DEFAULT_DUMP_TOOL


@contextmanager
def loaded_coordinator(args, options) -> Iterator[ReloadCoordinator]:
    """Run one reload and yield the coordinator holding its snapshot."""
    failures: list[tuple[ErrorKind, str]] = []
    binary_path = str(Path(args.binary).absolute())
    extra = {}
    addr2line = getattr(args, "addr2line", None) or options.get(CONF_ADDR2LINE_PATH)
    if addr2line:
        extra[CONF_LOCATION_TOOL_PATH] = addr2line
    verify = getattr(args, "verify_locations", False) or options[CONF_VERIFY_LOCATIONS]

    with ReloadCoordinator(
        on_reload_failed=lambda kind, detail: failures.append((kind, detail))
    ) as coordinator:
        coordinator.reload(
            binary_path,
            _dump_tool_path(args, options),
            resolve_locations=verify,
            **extra,
        )
        coordinator.wait_idle()

        if failures:
            kind, detail = failures[-1]
            _LOGGER.debug("Reload failed: %s", detail)
            raise SymsizeError(f"{FAILURE_MESSAGES[kind]} ({detail})")

        if not coordinator.current_snapshot():
            _LOGGER.warning(NO_SYMBOLS_MESSAGE)

        yield coordinator


def command_report(args, options) -> int:
    with loaded_coordinator(args, options) as coordinator:
        snapshot = coordinator.current_snapshot()

    records = filter_symbols(
        snapshot,
        pattern=args.filter or "",
        use_regex=args.regex or options[CONF_USE_REGEX_FILTERING],
        show_text=options[CONF_SHOW_TEXT] and not args.no_text,
        show_data=options[CONF_SHOW_DATA] and not args.no_data,
    )
    sys.stdout.write(format_csv(sort_for_display(records)))
    if args.totals:
        print()
        print(format_totals(snapshot))
    return 0


def command_locate(args, options) -> int:
    with loaded_coordinator(args, options) as coordinator:
        records = coordinator.current_snapshot().find(args.symbol)
        if not records:
            _LOGGER.error("Symbol %s not found in %s", args.symbol, args.binary)
            return 1

        for record in records:
            location = coordinator.resolve_location(record)
            if location is None:
                text = color(AnsiFore.YELLOW, "no location")
            else:
                text = str(location)
            print(f"{record.name} 0x{record.address:08x}: {text}")
    return 0


COMMANDS = {
    "report": command_report,
    "locate": command_locate,
}


def parse_args(argv):
    options_parser = argparse.ArgumentParser(add_help=False)
    options_parser.add_argument(
        "-v",
        "--verbose",
        help="Enable verbose logs.",
        action="store_true",
        default=get_bool_env(const.ENV_VERBOSE),
    )
    options_parser.add_argument(
        "-q", "--quiet", help="Disable all logs.", action="store_true"
    )
    options_parser.add_argument(
        "-l",
        "--log-level",
        help="Set the log level.",
        default=os.getenv(const.ENV_LOG_LEVEL, "INFO"),
        action="store",
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
    )
    options_parser.add_argument(
        "-c",
        "--config",
        help="YAML file with viewer options.",
        type=Path,
    )

    parser = argparse.ArgumentParser(
        description=f"symsize {const.__version__}", parents=[options_parser]
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"Version: {const.__version__}",
        help="Print the symsize version and exit.",
    )

    tool_options = argparse.ArgumentParser(add_help=False)
    tool_options.add_argument("binary", help="Built binary (ELF) to analyze.")
    tool_options.add_argument("--nm", help="Path to the nm executable.")

    subparsers = parser.add_subparsers(
        help="Command to run:", dest="command", metavar="command"
    )
    subparsers.required = True

    parser_report = subparsers.add_parser(
        "report",
        help="List symbol sizes grouped by storage class.",
        parents=[tool_options],
    )
    parser_report.add_argument(
        "-f", "--filter", help="Only list symbols whose name contains this text."
    )
    parser_report.add_argument(
        "--regex",
        help="Treat --filter as a regular expression.",
        action="store_true",
    )
    parser_report.add_argument(
        "--no-text", help="Hide code symbols.", action="store_true"
    )
    parser_report.add_argument(
        "--no-data", help="Hide data symbols.", action="store_true"
    )
    parser_report.add_argument(
        "--totals", help="Print totals per storage class.", action="store_true"
    )

    parser_locate = subparsers.add_parser(
        "locate",
        help="Show the source location of a symbol.",
        parents=[tool_options],
    )
    parser_locate.add_argument("symbol", help="Symbol name as listed by report.")
    parser_locate.add_argument("--addr2line", help="Path to the addr2line executable.")
    parser_locate.add_argument(
        "--verify-locations",
        help="Refuse to resolve locations if the binary changed since loading.",
        action="store_true",
    )

    return parser.parse_args(argv[1:])


def run_symsize(argv):
    args = parse_args(argv)
    if args.verbose:
        args.log_level = "DEBUG"
    elif args.quiet:
        args.log_level = "CRITICAL"

    setup_log(log_level=args.log_level)

    try:
        options = load_options(args.config)
        return COMMANDS[args.command](args, options)
    except vol.Invalid as e:
        _LOGGER.error("Invalid options: %s", e)
        return 1
    except SymsizeError as e:
        _LOGGER.error(e, exc_info=args.verbose)
        return 1


def main():
    try:
        return run_symsize(sys.argv)
    except KeyboardInterrupt:
        return 1


if __name__ == "__main__":
    sys.exit(main())
