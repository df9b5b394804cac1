from pathlib import Path

import pytest

from trashcan.trash_engine import HoldingArea, TrashCan, TrashConfig


@pytest.fixture
def trash_root(tmp_path: Path) -> Path:
    root = tmp_path / "trash"
    root.mkdir()
    return root


@pytest.fixture
def area(trash_root: Path) -> HoldingArea:
    return HoldingArea(trash_root)


@pytest.fixture
def workdir(tmp_path: Path, monkeypatch) -> Path:
    work = tmp_path / "work"
    work.mkdir()
    monkeypatch.chdir(work)
    return work


@pytest.fixture
def make_can(trash_root: Path, workdir: Path, tmp_path: Path):
    def factory(answers=(), assume_yes=False):
        replies = iter(answers)
        lines: list[str] = []
        config = TrashConfig(
            root=trash_root,
            log_file=tmp_path / "state" / "actions.log",
            restore_dir=workdir,
            assume_yes=assume_yes,
        )
        can = TrashCan(config, ask=lambda _prompt: next(replies), emit=lines.append)
        can.lines = lines
        return can

    return factory


@pytest.fixture
def cli_env(tmp_path: Path, workdir: Path, monkeypatch) -> Path:
    root = tmp_path / "cli-trash"
    monkeypatch.setenv("TRASHCAN_ROOT", str(root))
    monkeypatch.setenv("XDG_STATE_HOME", str(tmp_path / "state"))
    return root
