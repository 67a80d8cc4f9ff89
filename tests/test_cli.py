"""
Tests for the command line interface.

Each test runs commands against a fresh data directory.
"""

import json
import tempfile
from pathlib import Path

import pytest

from pyramid_ladder.__main__ import SAMPLE_PAIRS, render_pyramid, run
from pyramid_ladder.ladder import LadderService
from pyramid_ladder.storage.jsonl_storage import JSONLStorage


def cli(data_dir: str, *args: str) -> int:
    return run(["--data-dir", data_dir, "--log-file", "", "--log-level", "ERROR", *args])


def names_in_order(data_dir: str) -> list[str]:
    service = LadderService(JSONLStorage.in_directory(Path(data_dir)))
    return [r.pair.name for r in service.list_ranked_pairs()]


class TestCLI:
    """End-to-end command runs."""

    def test_demo_and_list(self, capsys: pytest.CaptureFixture[str]) -> None:
        with tempfile.TemporaryDirectory() as temp_dir:
            # Act
            assert cli(temp_dir, "demo") == 0
            assert cli(temp_dir, "list") == 0

            # Assert
            out = capsys.readouterr().out
            assert "João Silva/Pedro Santos" in out
            assert "7/45 pairs" in out
            assert len(names_in_order(temp_dir)) == len(SAMPLE_PAIRS)

    def test_demo_requires_empty_roster(self, capsys: pytest.CaptureFixture[str]) -> None:
        with tempfile.TemporaryDirectory() as temp_dir:
            assert cli(temp_dir, "demo") == 0

            assert cli(temp_dir, "demo") == 1
            assert "Error:" in capsys.readouterr().out

    def test_admit_and_check(self, capsys: pytest.CaptureFixture[str]) -> None:
        with tempfile.TemporaryDirectory() as temp_dir:
            assert cli(temp_dir, "admit", "Ana", "Maria", "--phone", "(11) 99999-0002") == 0
            assert cli(temp_dir, "admit", "Carlos", "Bruno") == 0

            assert cli(temp_dir, "check", "#2", "#1") == 0
            assert cli(temp_dir, "find", "11999990002") == 0

            out = capsys.readouterr().out
            assert "ALLOWED [level_above]" in out
            assert "Ana/Maria" in out

    def test_admit_same_player_twice(self) -> None:
        with tempfile.TemporaryDirectory() as temp_dir:
            assert cli(temp_dir, "admit", "Ana", "ana") == 1

    def test_challenge_with_confirmation_flag(self, capsys: pytest.CaptureFixture[str]) -> None:
        with tempfile.TemporaryDirectory() as temp_dir:
            # Arrange
            assert cli(temp_dir, "demo") == 0

            # Act
            code = cli(temp_dir, "challenge", "#5", "#1", "--result", "won", "--yes")

            # Assert
            assert code == 0
            assert names_in_order(temp_dir)[:2] == ["Paula Ferreira/Carla Rodrigues", "João Silva/Pedro Santos"]
            assert "Rose from rank 5 to rank 1" in capsys.readouterr().out

    def test_challenge_cancelled(self, monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str]) -> None:
        with tempfile.TemporaryDirectory() as temp_dir:
            assert cli(temp_dir, "demo") == 0
            before = names_in_order(temp_dir)
            monkeypatch.setattr("builtins.input", lambda _prompt: "n")

            assert cli(temp_dir, "challenge", "#7", "#6", "--result", "lost") == 0

            assert names_in_order(temp_dir) == before
            assert "Cancelled" in capsys.readouterr().out

    def test_ineligible_challenge(self, capsys: pytest.CaptureFixture[str]) -> None:
        with tempfile.TemporaryDirectory() as temp_dir:
            assert cli(temp_dir, "demo") == 0
            before = names_in_order(temp_dir)

            assert cli(temp_dir, "challenge", "#6", "#1", "--result", "won", "--yes") == 1

            assert names_in_order(temp_dir) == before
            assert "Error:" in capsys.readouterr().out

    def test_threshold(self, capsys: pytest.CaptureFixture[str]) -> None:
        with tempfile.TemporaryDirectory() as temp_dir:
            assert cli(temp_dir, "threshold", "0") == 1
            assert cli(temp_dir, "threshold", "3") == 0
            _ = capsys.readouterr()

            assert cli(temp_dir, "threshold") == 0

            assert "Top-challenge position limit: 3" in capsys.readouterr().out

    def test_maintenance_commands(self, capsys: pytest.CaptureFixture[str]) -> None:
        with tempfile.TemporaryDirectory() as temp_dir:
            assert cli(temp_dir, "demo") == 0

            assert cli(temp_dir, "reposition", "#6", "2") == 0
            assert cli(temp_dir, "edit", "#1", "--players", "João", "Pedro") == 0
            assert cli(temp_dir, "remove", "#3") == 0
            assert cli(temp_dir, "targets", "#5") == 0
            assert cli(temp_dir, "stats") == 0
            assert cli(temp_dir, "history") == 0
            assert cli(temp_dir, "pyramid") == 0

            names = names_in_order(temp_dir)
            assert names[0] == "João/Pedro"
            assert names[1] == "Diego Martins/Marcos Gomes"
            assert len(names) == 6
            out = capsys.readouterr().out
            assert "removal" in out
            assert "Pairs:     6/45" in out

    def test_export_and_import(self, capsys: pytest.CaptureFixture[str]) -> None:
        with tempfile.TemporaryDirectory() as temp_dir:
            # Arrange
            source_dir = str(Path(temp_dir) / "source")
            target_dir = str(Path(temp_dir) / "target")
            backup_file = str(Path(temp_dir) / "backup.json")
            assert cli(source_dir, "demo") == 0
            assert cli(source_dir, "challenge", "#3", "#2", "--result", "won", "--yes") == 0
            assert cli(target_dir, "admit", "Solo", "Pair") == 0

            # Act
            assert cli(source_dir, "export", backup_file) == 0
            assert cli(target_dir, "import", backup_file, "--yes") == 0

            # Assert
            assert names_in_order(target_dir) == names_in_order(source_dir)
            assert "Imported backup: 7 active pair(s)" in capsys.readouterr().out

    def test_import_bad_files(self) -> None:
        with tempfile.TemporaryDirectory() as temp_dir:
            broken = Path(temp_dir) / "broken.json"
            broken.write_text("{oops", encoding="utf-8")
            data_dir = str(Path(temp_dir) / "data")

            assert cli(data_dir, "import", str(broken), "--yes") == 1
            assert cli(data_dir, "import", str(Path(temp_dir) / "missing.json"), "--yes") == 1

    def test_bad_pair_references(self) -> None:
        with tempfile.TemporaryDirectory() as temp_dir:
            assert cli(temp_dir, "demo") == 0

            assert cli(temp_dir, "remove", "#99") == 1
            assert cli(temp_dir, "remove", "#abc") == 1
            assert cli(temp_dir, "remove", "nosuchid") == 1

    def test_invalid_capacity(self) -> None:
        with tempfile.TemporaryDirectory() as temp_dir:
            assert cli(temp_dir, "--capacity", "0", "list") == 1

    def test_corrupted_roster_is_an_internal_error(self, capsys: pytest.CaptureFixture[str]) -> None:
        """Active pairs with a rank gap exit with status 2."""
        with tempfile.TemporaryDirectory() as temp_dir:
            # Arrange
            pairs = [
                {"pair_id": "a", "player_a": "A1", "player_b": "A2", "level": 1, "slot": 1},
                {"pair_id": "b", "player_a": "B1", "player_b": "B2", "level": 2, "slot": 2},
            ]
            (Path(temp_dir) / "pairs.json").write_text(json.dumps({"pairs": pairs}), encoding="utf-8")

            # Act
            code = cli(temp_dir, "list")

            # Assert
            assert code == 2
            assert "Internal error" in capsys.readouterr().err


class TestRendering:
    """Text rendering helpers."""

    def test_empty_pyramid(self) -> None:
        assert render_pyramid([]) == "(empty pyramid)"
