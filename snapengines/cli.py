"""Command-line interface for managing inference engines."""

from __future__ import annotations

import argparse
import os
import subprocess
import sys
from typing import Iterable, TextIO

from .chat import ChatClient
from .context import ConfigLayer, Context, PermissionDeniedError
from .environment import OPENAI_ENDPOINT_KEY, server_api_urls
from .reporting import format_version, version_data
from .settings import DEPRECATED_CONFIG, get_value, get_values, set_value
from .suggestions import instance_name, suggest_service_management, suggest_start_server
from .validation import ValidationError, validate

try:
    from . import __version__ as _CLI_VERSION
except ImportError:
    _CLI_VERSION = ""


class _CommandError(Exception):
    """A command failed with a message for the user."""


def validate_manifests(paths: Iterable[str], out: TextIO | None = None) -> bool:
    """Validate each manifest file, report each result, and tell whether all passed."""
    out = out if out is not None else sys.stdout
    paths = list(paths)
    if not paths:
        raise _CommandError("no engine manifest specified")
    all_valid = True
    for path in paths:
        try:
            validate(path)
        except ValidationError as exc:
            all_valid = False
            out.write(f"❌ {path}: {exc}\n")
        else:
            out.write(f"✅ {path}\n")
    return all_valid


def _require_root() -> None:
    geteuid = getattr(os, "geteuid", None)
    if geteuid is None or geteuid() != 0:
        raise PermissionDeniedError()


def _require_config(ctx: Context):
    if ctx.config is None:
        raise _CommandError("configuration storage is not available")
    return ctx.config


def _cmd_get(args, ctx: Context, out: TextIO) -> None:
    config = _require_config(ctx)
    if args.key is None:
        out.write(get_values(config))
        return
    out.write(get_value(config, args.key))
    if args.key in DEPRECATED_CONFIG and out.isatty():
        print(f'Note: "{args.key}" configuration field is deprecated!', file=sys.stderr)


def _cmd_set(args, ctx: Context, out: TextIO) -> None:
    _require_root()
    config = _require_config(ctx)
    if args.package:
        layer = ConfigLayer.PACKAGE
    elif args.engine:
        layer = ConfigLayer.ENGINE
    else:
        layer = ConfigLayer.USER
    set_value(config, args.key_value, layer)


def _cmd_version(args, ctx: Context, out: TextIO) -> None:
    data = version_data(os.environ.get("SNAP_VERSION", ""), _CLI_VERSION)
    try:
        out.write(format_version(data, args.format))
    except ValueError as exc:
        raise _CommandError(str(exc)) from exc


def _service_state(service_name: str) -> str:
    """Return the 'Current' column that snapctl reports for a service."""
    try:
        result = subprocess.run(
            ["snapctl", "services", service_name],
            capture_output=True,
            text=True,
            check=True,
        )
    except (OSError, subprocess.CalledProcessError) as exc:
        raise _CommandError(f"error getting services: {exc}") from exc
    for line in result.stdout.splitlines()[1:]:
        columns = line.split()
        if len(columns) >= 3 and columns[0] == service_name:
            return columns[2]
    return ""


def _cmd_chat(args, ctx: Context, out: TextIO) -> None:
    if ctx.cache is None or ctx.config is None:
        raise _CommandError("engine state is not available")
    try:
        urls = server_api_urls(ctx)
    except Exception as exc:
        raise _CommandError(f"error getting server api urls: {exc}") from exc

    name = instance_name()
    if name:
        service_name = name + ".server"
        if _service_state(service_name) == "inactive":
            raise _CommandError(f"server not active\n\n{suggest_start_server()}")

    ChatClient(urls[OPENAI_ENDPOINT_KEY], "", ctx.verbose).start()


def _cmd_debug_chat(args, ctx: Context, out: TextIO) -> None:
    if not args.base_url:
        raise _CommandError("the --base-url parameter is required")
    ChatClient(args.base_url, args.model, ctx.verbose).start()


def _cmd_debug_validate(args, ctx: Context, out: TextIO) -> None:
    if not validate_manifests(args.paths, out):
        raise _CommandError("not all manifests are valid")


def build_parser(prog: str = "cli") -> argparse.ArgumentParser:
    """Build the argument parser for the command and its sub-commands."""
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument(
        "-v", "--verbose", action="store_true", default=argparse.SUPPRESS,
        help="Enable verbose logging",
    )

    epilog = suggest_service_management() if os.environ.get("SNAP") else None
    parser = argparse.ArgumentParser(
        prog=prog,
        description=(
            f"{prog} runs an engine that is optimized for your host machine,\n"
            "providing a local service endpoint.\n\n"
            "Use this command to configure the active engine, or switch to an alternative engine."
        ),
        epilog=epilog,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("-v", "--verbose", action="store_true", default=False,
                        help="Enable verbose logging")
    parser.set_defaults(handler=None, help_parser=parser)
    commands = parser.add_subparsers(title="commands", metavar="<command>")

    chat = commands.add_parser(
        "chat", parents=[common], help="Start the chat CLI",
        description="Chat with the server via its OpenAI API.\nThis CLI supports text-based prompting only.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    chat.set_defaults(handler=_cmd_chat)

    get = commands.add_parser(
        "get", parents=[common], help="Print configurations",
        description="Print one or more configurations",
    )
    get.add_argument("key", nargs="?", default=None)
    get.set_defaults(handler=_cmd_get)

    set_ = commands.add_parser(
        "set", parents=[common], help="Set configurations", description="Set a configuration",
    )
    set_.add_argument("key_value", metavar="<key=value>")
    set_.add_argument("--package", action="store_true", help=argparse.SUPPRESS)
    set_.add_argument("--engine", action="store_true", help=argparse.SUPPRESS)
    set_.set_defaults(handler=_cmd_set)

    version = commands.add_parser("version", parents=[common], help="Show version information")
    version.add_argument("--format", default="yaml", help="output format (json, yaml)")
    version.set_defaults(handler=_cmd_version)

    debug = commands.add_parser(
        "debug", parents=[common], description="Developer/debugging commands",
    )
    debug.set_defaults(handler=None, help_parser=debug)
    debug_commands = debug.add_subparsers(metavar="<command>")

    validate_cmd = debug_commands.add_parser(
        "validate-engines", parents=[common], help="Validate engine manifest files",
    )
    validate_cmd.add_argument("paths", nargs="+", metavar="<manifest>")
    validate_cmd.set_defaults(handler=_cmd_debug_validate)

    debug_chat = debug_commands.add_parser(
        "chat", parents=[common],
        help="Start the chat CLI providing connection parameters",
        description=(
            "Open a text-only chat session to the OpenAI-compatible server at the "
            "provided URL, requesting the model as specified."
        ),
    )
    debug_chat.add_argument("--base-url", default="", help="Base URL of the OpenAI-compatible server")
    debug_chat.add_argument("--model", default="", help="Name of the model to use")
    debug_chat.set_defaults(handler=_cmd_debug_chat)

    return parser


def main(argv: list[str] | None = None) -> int:
    """Run the command line; return the exit status."""
    ctx = Context(engines_dir=os.environ.get("SNAP", "") + "/engines")
    parser = build_parser(instance_name() or "cli")
    args = parser.parse_args(argv)

    ctx.verbose = bool(args.verbose)
    if ctx.verbose:
        print("Verbose output enabled globally.", file=sys.stderr)
        os.environ["VERBOSE"] = "true"

    if args.handler is None:
        args.help_parser.print_help()
        return 0

    try:
        args.handler(args, ctx, sys.stdout)
    except Exception as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())