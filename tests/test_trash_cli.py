import logging
import re
import shutil
import sys

import pytest

from trashcan import trash_engine
from trashcan.trash_cli import main
from trashcan.trash_recover import run as run_recover


def no_prompt(prompt):
    raise AssertionError(f"unexpected prompt: {prompt}")


@pytest.fixture
def installed(cli_env):
    assert main(["install"]) == 0
    return cli_env


@pytest.fixture
def trashed_notes(installed, workdir):
    (workdir / "notes.txt").write_text("hello")
    assert main(["delete", "notes.txt"]) == 0
    return installed


def test_no_command_prints_help(cli_env, capsys):
    assert main([]) == 1
    assert "usage:" in capsys.readouterr().out


def test_commands_require_installed_trash(cli_env, capsys):
    for argv in (["list"], ["size"], ["recover", "x"], ["delete", "x"], ["uninstall"], ["location"]):
        assert main(argv) == 2
    assert "install" in capsys.readouterr().err
    assert not cli_env.exists()


def test_install_is_idempotent(cli_env, capsys):
    assert main(["install"]) == 0
    assert main(["install"]) == 0

    out = capsys.readouterr().out
    assert "Trash installed" in out
    assert "already installed" in out
    assert cli_env.is_dir()


def test_root_option_overrides_environment(cli_env, tmp_path):
    other = tmp_path / "elsewhere"

    assert main(["--root", str(other), "install"]) == 0

    assert other.is_dir()
    assert not cli_env.exists()


def test_delete_then_list(trashed_notes, workdir, capsys):
    capsys.readouterr()

    assert main(["list"]) == 0

    lines = capsys.readouterr().out.splitlines()
    assert len(lines) == 1
    assert re.fullmatch(r"\d{4}-\d{2}-\d{2}/notes\.txt-\d{6}", lines[0])
    assert not (workdir / "notes.txt").exists()


def test_delete_missing_file_is_reported(installed, capsys):
    assert main(["delete", "missing.txt"]) == 1

    assert "No such file or directory" in capsys.readouterr().err
    assert list(installed.iterdir()) == []


def test_delete_status_follows_last_item(installed, workdir, capsys):
    (workdir / "notes.txt").write_text("hello")

    assert main(["delete", "missing.txt", "notes.txt"]) == 0

    assert "missing.txt" in capsys.readouterr().err
    assert len(list(installed.iterdir())) == 1


def test_recover_restores_into_current_directory(trashed_notes, workdir, capsys):
    capsys.readouterr()

    assert main(["recover", "notes"], ask=lambda _p: "1") == 0

    out = capsys.readouterr().out
    assert re.search(r"^1: \d{4}-\d{2}-\d{2} \d{2}:\d{2}:\d{2} \| \d{4}-\d{2}-\d{2}/notes\.txt-\d{6}$", out, re.M)
    assert "Recovered" in out
    assert (workdir / "notes.txt").read_text() == "hello"
    assert list(trashed_notes.iterdir()) == []


def test_recover_without_matches(trashed_notes, capsys):
    assert main(["recover", "zzz"], ask=no_prompt) == 3

    assert "No matching files" in capsys.readouterr().err
    assert len(list(trashed_notes.iterdir())) == 1


def test_recover_cancelled(trashed_notes, capsys):
    assert main(["recover", "notes"], ask=lambda _p: "") == 5

    assert "nothing recovered" in capsys.readouterr().out


def test_recover_invalid_selection(trashed_notes, capsys):
    assert main(["recover", "notes"], ask=lambda _p: "9") == 4

    assert "out of range" in capsys.readouterr().err


def test_recover_wrapper_reads_stdin(trashed_notes, workdir, monkeypatch):
    monkeypatch.setattr(sys, "argv", ["trash-recover", "notes"])
    monkeypatch.setattr("builtins.input", lambda _p: "1")

    assert run_recover() == 0
    assert (workdir / "notes.txt").read_text() == "hello"


def test_empty_asks_first(trashed_notes, capsys):
    assert main(["empty"], ask=lambda _p: "n") == 0
    assert "not emptied" in capsys.readouterr().out
    assert len(list(trashed_notes.iterdir())) == 1

    assert main(["empty"], ask=lambda _p: "y") == 0
    assert list(trashed_notes.iterdir()) == []


def test_empty_with_yes_skips_prompt(trashed_notes):
    assert main(["empty", "--yes"], ask=no_prompt) == 0
    assert trashed_notes.is_dir()
    assert list(trashed_notes.iterdir()) == []


def test_uninstall_removes_trash(trashed_notes):
    assert main(["uninstall"], ask=no_prompt) == 0

    assert not trashed_notes.exists()
    assert main(["list"]) == 2


@pytest.mark.parametrize("command", ["location", "locate"])
def test_location(installed, capsys, command):
    assert main([command]) == 0
    assert capsys.readouterr().out.strip() == str(installed)


def test_size_prints_du_total(installed, monkeypatch, capsys):
    monkeypatch.setattr(trash_engine, "run_command", lambda cmd: (0, f"8.0K\t{cmd[-1]}\n", ""))

    assert main(["size"]) == 0
    assert capsys.readouterr().out.strip() == "8.0K"


def test_size_prints_nothing_when_du_fails(installed, monkeypatch, capsys):
    monkeypatch.setattr(trash_engine, "run_command", lambda cmd: (127, "", "du: not found"))

    assert main(["size"]) == 0
    assert capsys.readouterr().out == ""


def test_unknown_command_is_generic_failure(installed, capsys):
    assert main(["frobnicate"]) == 1
    assert "usage:" in capsys.readouterr().err


def test_recover_without_query_is_generic_failure(installed, monkeypatch):
    assert main(["recover"]) == 1

    monkeypatch.setattr(sys, "argv", ["trash-recover"])
    assert run_recover() == 1


def test_delete_continues_after_failed_move(installed, workdir, monkeypatch, capsys):
    (workdir / "a.txt").write_text("a")
    (workdir / "b.txt").write_text("b")
    real_move = shutil.move

    def move_refusing_a(src, dst):
        if str(src).endswith("a.txt"):
            raise PermissionError(13, "Permission denied", str(src))
        return real_move(src, dst)

    monkeypatch.setattr(trash_engine.shutil, "move", move_refusing_a)

    assert main(["delete", "a.txt", "b.txt"]) == 0

    assert "cannot delete 'a.txt'" in capsys.readouterr().err
    assert (workdir / "a.txt").exists()
    assert not (workdir / "b.txt").exists()
    assert len(list(installed.iterdir())) == 1


def test_unusable_log_file_does_not_crash(installed, tmp_path, monkeypatch, capsys):
    monkeypatch.setattr(logging.getLogger("trashcan"), "handlers", [])
    monkeypatch.setattr(trash_engine.tempfile, "gettempdir", lambda: str(tmp_path / "tmp"))

    assert main(["--log-file", str(tmp_path), "location"]) == 0

    handler = logging.getLogger("trashcan").handlers[0]
    assert handler.baseFilename == str(tmp_path / "tmp" / "trashcan" / "actions.log")
    handler.close()
