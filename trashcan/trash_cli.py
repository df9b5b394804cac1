#!/usr/bin/env python3
"""Command line front end for the trash can.

One subcommand per operation; every command returns its exit status.
"""

from __future__ import annotations

import argparse
import sys
from pathlib import Path

from trashcan.trash_engine import (
    APP_NAME,
    EXIT_FAILURE,
    EXIT_OK,
    Prompt,
    RecoveryState,
    TrashCan,
    TrashConfig,
    TrashEntry,
    TrashError,
    default_log_file,
    default_root,
)


def _error(message: str) -> None:
    print(f"{APP_NAME}: {message}", file=sys.stderr)


# -------------------------------- Commands ---------------------------------- #


def command_delete(can: TrashCan, args: argparse.Namespace) -> int:
    status = EXIT_OK
    for path, result in can.delete(args.files):
        if isinstance(result, TrashEntry):
            status = EXIT_OK
        elif isinstance(result, TrashError):
            _error(str(result))
            status = EXIT_FAILURE
        else:
            _error(f"cannot delete '{path}': {result}")
            status = EXIT_FAILURE
    return status


def command_empty(can: TrashCan, args: argparse.Namespace) -> int:
    removed = can.empty()
    if removed is None:
        print("Trash not emptied.")
        return EXIT_OK
    print(f"Removed {removed} item(s) from the trash.")
    return EXIT_OK


def command_install(can: TrashCan, _: argparse.Namespace) -> int:
    if can.area.install():
        print(f"Trash installed at {can.area.root}")
    else:
        print(f"Trash already installed at {can.area.root}")
    return EXIT_OK


def command_uninstall(can: TrashCan, _: argparse.Namespace) -> int:
    # uninstall is not confirmed; --yes is accepted for symmetry with empty
    can.area.uninstall()
    print(f"Trash removed from {can.area.root}")
    return EXIT_OK


def command_list(can: TrashCan, _: argparse.Namespace) -> int:
    for rel in can.list_entries():
        print(rel)
    return EXIT_OK


def command_location(can: TrashCan, _: argparse.Namespace) -> int:
    print(can.location())
    return EXIT_OK


def command_recover(can: TrashCan, args: argparse.Namespace) -> int:
    outcome = can.recover(args.query)
    if outcome.state in {RecoveryState.DONE, RecoveryState.CANCELLED}:
        print(outcome.message)
    else:
        _error(outcome.message)
    return outcome.exit_code


def command_size(can: TrashCan, _: argparse.Namespace) -> int:
    size = can.size()
    if size:
        print(size)
    return EXIT_OK


# ------------------------------- Parser ------------------------------------- #


class TrashArgumentParser(argparse.ArgumentParser):
    """Usage errors exit 1; status 2 means the trash is not installed."""

    def error(self, message: str):
        self.print_usage(sys.stderr)
        self.exit(EXIT_FAILURE, f"{self.prog}: error: {message}\n")


def _add_yes(p: argparse.ArgumentParser) -> None:
    p.add_argument("--yes", action="store_true", help="Assume yes for prompts")


def build_parser() -> argparse.ArgumentParser:
    p = TrashArgumentParser(prog=APP_NAME, description="Reversible deletion into a dated trash directory")
    p.add_argument("--root", default=None, help=f"Trash directory (default: {default_root()})")
    p.add_argument("--log-file", default=None, help=f"Action log file (default: {default_log_file()})")
    sub = p.add_subparsers(dest="command")

    x = sub.add_parser("delete", help="Move files into the trash")
    x.add_argument("files", nargs="+")
    x.set_defaults(func=command_delete)

    x = sub.add_parser("empty", help="Permanently remove everything in the trash")
    _add_yes(x)
    x.set_defaults(func=command_empty)

    x = sub.add_parser("install", help="Create the trash directory")
    x.set_defaults(func=command_install, needs_trash=False)

    x = sub.add_parser("uninstall", help="Remove the trash directory and its contents")
    _add_yes(x)
    x.set_defaults(func=command_uninstall)

    x = sub.add_parser("list", help="List trashed files")
    x.set_defaults(func=command_list)

    x = sub.add_parser("location", aliases=["locate"], help="Print the trash directory")
    x.set_defaults(func=command_location)

    x = sub.add_parser("recover", help="Restore a trashed file into the current directory")
    x.add_argument("query", help="Part of the file name to look for")
    x.set_defaults(func=command_recover)

    x = sub.add_parser("size", help="Print the disk usage of the trash")
    x.set_defaults(func=command_size)

    return p


def build_config(args: argparse.Namespace) -> TrashConfig:
    config = TrashConfig(assume_yes=getattr(args, "yes", False))
    if args.root:
        config.root = Path(args.root).expanduser()
    if args.log_file:
        config.log_file = Path(args.log_file).expanduser()
    return config


def main(argv: list[str] | None = None, *, ask: Prompt | None = None) -> int:
    parser = build_parser()
    try:
        args = parser.parse_args(argv)
    except SystemExit as exc:
        # --help exits 0, usage errors exit EXIT_FAILURE
        return exc.code if isinstance(exc.code, int) else EXIT_FAILURE
    if getattr(args, "func", None) is None:
        parser.print_help()
        return EXIT_FAILURE

    can = TrashCan(build_config(args), ask=ask)
    try:
        if getattr(args, "needs_trash", True):
            can.area.require()
        return int(args.func(can, args))
    except TrashError as exc:
        _error(str(exc))
        return exc.exit_code
    except OSError as exc:
        can.logger.error("command_failed command=%s err=%s", args.command, exc)
        _error(str(exc))
        return EXIT_FAILURE


if __name__ == "__main__":
    raise SystemExit(main())
