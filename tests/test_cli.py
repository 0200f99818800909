"""
tests/test_cli.py — Smoke tests for the ``unheard`` command line.
"""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from conftest import checkerboard, png_bytes
from unheard.cli import main


def test_text(capsys: pytest.CaptureFixture) -> None:
    assert main(["text", "  Hello world  "]) == 0
    out = capsys.readouterr().out
    assert out.splitlines()[0] == "Hello world"
    assert "confidence: 1.00" in out


def test_symbols_json(capsys: pytest.CaptureFixture) -> None:
    code = main([
        "--json", "symbol", "i", "want", "water",
        "--phrase", "please", "--complexity", "expanded", "--mood", "urgent",
    ])
    assert code == 0
    payload = json.loads(capsys.readouterr().out)
    assert payload["kind"] == "symbol"
    assert payload["content"] == "Please, I want water, please."
    assert "errors" not in payload


def test_unknown_symbol_is_usage_error(capsys: pytest.CaptureFixture) -> None:
    assert main(["symbol", "i", "teleport"]) == 2
    assert "teleport" in capsys.readouterr().err


def test_image_file_as_camera(tmp_path: Path, capsys: pytest.CaptureFixture) -> None:
    path = tmp_path / "page.png"
    path.write_bytes(png_bytes(checkerboard(channels=3)))
    assert main(["camera", str(path)]) == 0
    assert "64x64" in capsys.readouterr().out


def test_image_file_as_voice_uses_fallback(tmp_path: Path, capsys: pytest.CaptureFixture) -> None:
    path = tmp_path / "page.png"
    path.write_bytes(png_bytes(checkerboard()))
    assert main(["voice", str(path)]) == 1
    assert "kind mismatch" in capsys.readouterr().out.lower()


def test_missing_file(tmp_path: Path, capsys: pytest.CaptureFixture) -> None:
    assert main(["voice", str(tmp_path / "nope.wav")]) == 2


def test_missing_config(tmp_path: Path, capsys: pytest.CaptureFixture) -> None:
    assert main(["--config", str(tmp_path / "nope.yaml"), "text", "hi"]) == 2
    assert "not found" in capsys.readouterr().err
