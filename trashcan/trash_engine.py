#!/usr/bin/env python3
"""Trash can engine: reversible deletion into a dated holding area.

Deleted files are moved, not removed, into a holding area laid out as::

    <root>/YYYY-MM-DD/<original name>-HHMMSS

It provides:
- Storage naming (dated directory + time-suffixed stored name, and back)
- Holding area access (enumerate, substring search, move, purge, size)
- Numbered, timestamp-decorated presentation of search matches
- Interactive recovery of one selected match into the restore directory
"""

from __future__ import annotations

import dataclasses
import datetime as dt
import enum
import logging
import os
import shutil
import subprocess
import tempfile
from pathlib import Path
from typing import Callable, Iterator, Sequence

# ------------------------------- Constants ---------------------------------- #

APP_NAME = "trashcan"
ROOT_ENV_VAR = "TRASHCAN_ROOT"

DATE_FORMAT = "%Y-%m-%d"
TIME_FORMAT = "%H%M%S"
# "-HHMMSS" appended to the original name
TIME_SUFFIX_LEN = 7

EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_NO_HOLDING_AREA = 2
EXIT_NO_MATCHES = 3
EXIT_INVALID_SELECTION = 4
EXIT_CANCELLED = 5

CRITICAL_DELETE_PATHS = {
    "/",
    "/bin",
    "/boot",
    "/dev",
    "/etc",
    "/home",
    "/lib",
    "/lib64",
    "/proc",
    "/root",
    "/run",
    "/sbin",
    "/sys",
    "/usr",
    "/var",
}

Prompt = Callable[[str], str]
Emit = Callable[[str], None]


def _xdg_dir(env_var: str, *fallback: str) -> Path:
    value = os.environ.get(env_var, "").strip()
    if value:
        return Path(value).expanduser()
    return Path.home().joinpath(*fallback)


def default_root() -> Path:
    override = os.environ.get(ROOT_ENV_VAR, "").strip()
    if override:
        return Path(override).expanduser()
    return _xdg_dir("XDG_DATA_HOME", ".local", "share") / APP_NAME


def default_log_file() -> Path:
    return _xdg_dir("XDG_STATE_HOME", ".local", "state") / APP_NAME / "actions.log"


# ------------------------------- Utilities ---------------------------------- #


def ensure_parent(path: Path) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)


def run_command(command: list[str], timeout: int = 120) -> tuple[int, str, str]:
    try:
        cp = subprocess.run(
            command,
            text=True,
            capture_output=True,
            timeout=timeout,
            check=False,
        )
        return cp.returncode, cp.stdout, cp.stderr
    except (OSError, subprocess.SubprocessError) as exc:
        return 1, "", str(exc)


def dir_size_human(path: str) -> str | None:
    """Return ``du -sh`` output for ``path``, or None when du fails."""
    code, out, _ = run_command(["du", "-sh", path])
    if code != 0:
        return None
    parts = out.strip().split()
    return parts[0] if parts else None


def setup_logger(log_file: Path) -> logging.Logger:
    """Attach a file handler to the ``trashcan`` logger once per process.

    Only the first call decides the log file; later calls return the same
    logger and ignore ``log_file``. An unusable path falls back to a log
    under the temp directory.
    """
    logger = logging.getLogger(APP_NAME)
    if logger.handlers:
        return logger

    try:
        ensure_parent(log_file)
        fh = logging.FileHandler(log_file, encoding="utf-8")
    except OSError:
        chosen = Path(tempfile.gettempdir()) / APP_NAME / "actions.log"
        ensure_parent(chosen)
        fh = logging.FileHandler(chosen, encoding="utf-8")

    logger.setLevel(logging.INFO)
    fmt = logging.Formatter("%(asctime)s %(levelname)s %(message)s")
    fh.setFormatter(fmt)
    logger.addHandler(fh)
    return logger


def ask_yes_no(
    question: str,
    *,
    ask: Prompt | None = None,
    default_yes: bool = False,
    assume_yes: bool = False,
) -> bool:
    if assume_yes:
        return True
    prompt = "[Y/n]" if default_yes else "[y/N]"
    try:
        raw = (ask or input)(f"{question} {prompt}: ").strip().lower()
    except EOFError:
        raw = ""
    if not raw:
        return default_yes
    return raw in {"y", "yes"}


# -------------------------------- Errors ------------------------------------ #


class TrashError(Exception):
    """Base error; ``exit_code`` is the process status it maps to."""

    exit_code = EXIT_FAILURE


class PreconditionError(TrashError):
    exit_code = EXIT_NO_HOLDING_AREA


class NotFoundError(TrashError):
    exit_code = EXIT_NO_MATCHES


class InputError(TrashError):
    exit_code = EXIT_INVALID_SELECTION


class UserCancelled(TrashError):
    exit_code = EXIT_CANCELLED


class ProtectedPathError(TrashError):
    exit_code = EXIT_FAILURE


# ------------------------------ Data Models --------------------------------- #


@dataclasses.dataclass(slots=True)
class TrashConfig:
    root: Path = dataclasses.field(default_factory=default_root)
    log_file: Path = dataclasses.field(default_factory=default_log_file)
    restore_dir: Path = dataclasses.field(default_factory=Path.cwd)
    assume_yes: bool = False


def decode_stored_name(stored_name: str) -> str:
    """Drop the trailing ``-HHMMSS`` from a stored name.

    A name that merely looks like it ends in a time suffix decodes the same
    way; that ambiguity is inherent to the naming scheme.
    """
    if len(stored_name) <= TIME_SUFFIX_LEN or stored_name[-TIME_SUFFIX_LEN] != "-":
        raise ValueError(f"Not a stored trash name: {stored_name!r}")
    return stored_name[:-TIME_SUFFIX_LEN]


def split_relative_path(relative_path: str) -> tuple[str, str]:
    """Split ``date/stored[/nested...]`` into ``(date, stored)``."""
    date_part, _, rest = relative_path.partition("/")
    return date_part, rest.split("/")[0]


@dataclasses.dataclass(frozen=True, slots=True)
class TrashEntry:
    """One stored item: when it was deleted and what it was called."""

    deletion_date: dt.date
    deletion_time: dt.time
    original_name: str

    @classmethod
    def encode(cls, original_name: str, now: dt.datetime) -> TrashEntry:
        if not original_name or "/" in original_name or original_name in {".", ".."}:
            raise ValueError(f"Not a plain file name: {original_name!r}")
        return cls(now.date(), now.time().replace(microsecond=0), original_name)

    @classmethod
    def parse(cls, relative_path: str) -> TrashEntry:
        date_part, stored = split_relative_path(relative_path)
        original = decode_stored_name(stored)
        deletion_date = dt.datetime.strptime(date_part, DATE_FORMAT).date()
        deletion_time = dt.datetime.strptime(stored[-(TIME_SUFFIX_LEN - 1):], TIME_FORMAT).time()
        return cls(deletion_date, deletion_time, original)

    @property
    def relative_directory(self) -> str:
        return self.deletion_date.strftime(DATE_FORMAT)

    @property
    def stored_name(self) -> str:
        return f"{self.original_name}-{self.deletion_time.strftime(TIME_FORMAT)}"

    @property
    def relative_path(self) -> str:
        return f"{self.relative_directory}/{self.stored_name}"


@dataclasses.dataclass(frozen=True, slots=True)
class MatchCandidate:
    index: int
    relative_path: str
    deletion_date: str
    stored_name: str

    @property
    def display_time(self) -> str:
        t = self.stored_name[-(TIME_SUFFIX_LEN - 1):]
        return f"{t[0:2]}:{t[2:4]}:{t[4:6]}"

    @property
    def display_timestamp(self) -> str:
        return f"{self.deletion_date} {self.display_time}"

    @property
    def display_path(self) -> str:
        return f"{self.deletion_date}/{self.stored_name}"

    def format_line(self) -> str:
        return f"{self.index}: {self.display_timestamp} | {self.display_path}"


def present_matches(relative_paths: Sequence[str]) -> list[MatchCandidate]:
    """Number matches from 1 in input order; raise NotFoundError if none."""
    if not relative_paths:
        raise NotFoundError("No matching files in the trash.")
    candidates = []
    for index, rel in enumerate(relative_paths, start=1):
        date_part, stored = split_relative_path(rel)
        candidates.append(
            MatchCandidate(index=index, relative_path=rel, deletion_date=date_part, stored_name=stored)
        )
    return candidates


# ------------------------------ Holding Area -------------------------------- #


class HoldingArea:
    """Filesystem access to the dated holding area under ``root``."""

    def __init__(self, root: Path, logger: logging.Logger | None = None):
        self.root = Path(root)
        self.logger = logger or logging.getLogger(APP_NAME)

    def exists(self) -> bool:
        return self.root.is_dir()

    def require(self) -> None:
        if not self.exists():
            raise PreconditionError(f"Trash not installed at {self.root}; run 'install' first.")

    def install(self) -> bool:
        if self.exists():
            return False
        self.root.mkdir(parents=True, exist_ok=True)
        self.logger.info("trash_install root=%s", self.root)
        return True

    def uninstall(self) -> None:
        self.require()
        shutil.rmtree(self.root)
        self.logger.info("trash_uninstall root=%s", self.root)

    def iter_entries(self) -> Iterator[str]:
        """Yield relative paths of every stored leaf, re-reading the disk each call."""
        for dirpath, dirnames, filenames in os.walk(self.root):
            dirnames.sort()
            current = Path(dirpath)
            rel_dir = current.relative_to(self.root)
            depth = len(rel_dir.parts)
            if depth == 0:
                continue
            if depth >= 2 and not dirnames and not filenames:
                yield rel_dir.as_posix()
                continue
            linked_dirs = [d for d in dirnames if (current / d).is_symlink()]
            for name in sorted(filenames + linked_dirs):
                yield (rel_dir / name).as_posix()

    def search(self, substring: str) -> list[str]:
        """Entries whose path below the dated directory contains ``substring``."""
        return [rel for rel in self.iter_entries() if substring in rel.partition("/")[2]]

    def store(self, path: Path, now: dt.datetime | None = None) -> TrashEntry:
        path = Path(path)
        if not path.exists() and not path.is_symlink():
            raise NotFoundError(f"cannot delete '{path}': No such file or directory")
        self._check_protected(path)

        entry = TrashEntry.encode(path.name, now or dt.datetime.now())
        target = self.root / entry.relative_directory / entry.stored_name
        target.parent.mkdir(exist_ok=True)
        if target.exists() or target.is_symlink():
            self.logger.warning("trash_store_overwrite target=%s", target)
            self._remove(target)
        shutil.move(str(path), str(target))
        self.logger.info("trash_store path=%s stored=%s", path, entry.relative_path)
        return entry

    def move(self, relative_path: str, destination: Path) -> Path:
        source = self.root / relative_path
        shutil.move(str(source), str(destination))
        parent = source.parent
        if parent != self.root and parent.is_dir() and not any(parent.iterdir()):
            parent.rmdir()
        return Path(destination)

    def remove_all(self) -> int:
        removed = 0
        for child in self.root.iterdir():
            self._remove(child)
            removed += 1
        self.logger.info("trash_empty root=%s removed=%s", self.root, removed)
        return removed

    def size_on_disk(self) -> str | None:
        return dir_size_human(str(self.root))

    def _check_protected(self, path: Path) -> None:
        location = path.parent.resolve() / path.name
        if path.name in {"", ".", ".."} or str(location) in CRITICAL_DELETE_PATHS:
            raise ProtectedPathError(f"refusing to delete protected path '{path}'")
        root = self.root.resolve()
        if location == root or root.is_relative_to(location):
            raise ProtectedPathError(f"refusing to delete '{path}': it contains the trash")
        if location.is_relative_to(root):
            raise ProtectedPathError(f"refusing to delete '{path}': it is already in the trash")

    @staticmethod
    def _remove(path: Path) -> None:
        if path.is_dir() and not path.is_symlink():
            shutil.rmtree(path)
        else:
            path.unlink(missing_ok=True)


# ---------------------------- Recovery Resolver ----------------------------- #


class RecoveryState(enum.Enum):
    AWAITING_QUERY = "awaiting_query"
    SEARCHING = "searching"
    NO_MATCHES = "no_matches"
    PRESENTING_CHOICES = "presenting_choices"
    AWAITING_SELECTION = "awaiting_selection"
    CANCELLED = "cancelled"
    INVALID_SELECTION = "invalid_selection"
    RECOVERING = "recovering"
    DONE = "done"


TERMINAL_EXIT_CODES = {
    RecoveryState.NO_MATCHES: EXIT_NO_MATCHES,
    RecoveryState.CANCELLED: EXIT_CANCELLED,
    RecoveryState.INVALID_SELECTION: EXIT_INVALID_SELECTION,
    RecoveryState.DONE: EXIT_OK,
}


@dataclasses.dataclass(slots=True)
class RecoveryOutcome:
    state: RecoveryState
    query: str
    candidates: list[MatchCandidate] = dataclasses.field(default_factory=list)
    selected: MatchCandidate | None = None
    restored_path: Path | None = None
    message: str = ""

    @property
    def exit_code(self) -> int:
        return TERMINAL_EXIT_CODES[self.state]


def parse_selection(answer: str, count: int) -> int:
    text = answer.strip()
    if not text:
        raise UserCancelled("No selection given; nothing recovered.")
    if not (text.isascii() and text.isdigit()):
        raise InputError(f"Invalid selection: {text!r}")
    index = int(text)
    if not 1 <= index <= count:
        raise InputError(f"Selection out of range: {index} (choose 1-{count})")
    return index


class RecoveryResolver:
    """Search, present, ask, restore. Every run ends in a terminal state."""

    def __init__(
        self,
        area: HoldingArea,
        restore_dir: Path,
        ask: Prompt | None = None,
        emit: Emit | None = None,
        logger: logging.Logger | None = None,
    ):
        self.area = area
        self.restore_dir = Path(restore_dir)
        self.ask = ask
        self.emit = emit
        self.logger = logger or area.logger
        self.state = RecoveryState.AWAITING_QUERY

    def recover(self, query: str) -> RecoveryOutcome:
        self.state = RecoveryState.AWAITING_QUERY
        outcome = RecoveryOutcome(state=self.state, query=query)

        try:
            self.state = RecoveryState.SEARCHING
            matches = self.area.search(query)
            outcome.candidates = present_matches(matches)

            self.state = RecoveryState.PRESENTING_CHOICES
            emit = self.emit or print
            for candidate in outcome.candidates:
                emit(candidate.format_line())

            self.state = RecoveryState.AWAITING_SELECTION
            index = parse_selection(self._read_answer(len(outcome.candidates)), len(outcome.candidates))
            outcome.selected = outcome.candidates[index - 1]

            self.state = RecoveryState.RECOVERING
            outcome.restored_path = self._restore(outcome.selected)
            outcome.message = f"Recovered {outcome.selected.display_path} to {outcome.restored_path}"
            self.logger.info(
                "trash_recover query=%r stored=%s restored=%s",
                query,
                outcome.selected.display_path,
                outcome.restored_path,
            )
            self.state = RecoveryState.DONE
        except NotFoundError as exc:
            self.state = RecoveryState.NO_MATCHES
            outcome.message = f"{exc} (query: {query!r})"
            self.logger.info("recover_no_matches query=%r", query)
        except UserCancelled as exc:
            self.state = RecoveryState.CANCELLED
            outcome.message = str(exc)
            self.logger.info("recover_cancelled query=%r", query)
        except InputError as exc:
            self.state = RecoveryState.INVALID_SELECTION
            outcome.message = str(exc)
            self.logger.info("recover_invalid_selection query=%r err=%s", query, exc)

        outcome.state = self.state
        return outcome

    def _read_answer(self, count: int) -> str:
        try:
            return (self.ask or input)(f"Recover which file? [1-{count}, empty to cancel]: ")
        except EOFError:
            return ""

    def _restore(self, candidate: MatchCandidate) -> Path:
        try:
            original_name = decode_stored_name(candidate.stored_name)
        except ValueError as exc:
            raise InputError(str(exc)) from None
        return self.area.move(candidate.display_path, self.restore_dir / original_name)


# ------------------------------- Orchestrator ------------------------------- #


class TrashCan:
    """Top-level orchestrator for the delete/list/recover/empty/size flows."""

    def __init__(self, config: TrashConfig, ask: Prompt | None = None, emit: Emit | None = None):
        self.config = config
        self.ask = ask
        self.emit = emit
        self.logger = setup_logger(config.log_file)
        self.area = HoldingArea(config.root, logger=self.logger)

    def delete(self, paths: Sequence[str], now: dt.datetime | None = None) -> list[tuple[str, TrashEntry | Exception]]:
        """Trash each path in turn; a failed item is reported and the rest still run."""
        results: list[tuple[str, TrashEntry | Exception]] = []
        for p in paths:
            try:
                results.append((p, self.area.store(Path(p), now=now)))
            except (NotFoundError, ProtectedPathError) as exc:
                self.logger.warning("trash_store_missing path=%s err=%s", p, exc)
                results.append((p, exc))
            except OSError as exc:
                self.logger.error("trash_store_failed path=%s err=%s", p, exc)
                results.append((p, exc))
        return results

    def empty(self) -> int | None:
        if not ask_yes_no("Permanently delete everything in the trash?", ask=self.ask, assume_yes=self.config.assume_yes):
            return None
        return self.area.remove_all()

    def recover(self, query: str) -> RecoveryOutcome:
        resolver = RecoveryResolver(
            self.area,
            restore_dir=self.config.restore_dir,
            ask=self.ask,
            emit=self.emit,
            logger=self.logger,
        )
        return resolver.recover(query)

    def list_entries(self) -> Iterator[str]:
        return self.area.iter_entries()

    def location(self) -> Path:
        return self.area.root

    def size(self) -> str | None:
        return self.area.size_on_disk()


__all__ = [
    "EXIT_CANCELLED",
    "EXIT_FAILURE",
    "EXIT_INVALID_SELECTION",
    "EXIT_NO_HOLDING_AREA",
    "EXIT_NO_MATCHES",
    "EXIT_OK",
    "HoldingArea",
    "InputError",
    "MatchCandidate",
    "NotFoundError",
    "PreconditionError",
    "ProtectedPathError",
    "RecoveryOutcome",
    "RecoveryResolver",
    "RecoveryState",
    "TrashCan",
    "TrashConfig",
    "TrashEntry",
    "TrashError",
    "UserCancelled",
    "ask_yes_no",
    "decode_stored_name",
    "default_log_file",
    "default_root",
    "dir_size_human",
    "parse_selection",
    "present_matches",
    "setup_logger",
]
