"""Tests for the command-line interface."""
from __future__ import annotations

import json

import pytest

from conftest import FakeSpeechModel
from voxai import cli
from voxai.tts.pipeline import GenerationPipeline


def _json_line(out: str) -> dict:
    return json.loads(next(line for line in out.splitlines() if line.startswith("{")))


def test_cli_dry_run(capsys):
    rc = cli.main(["Merhaba dunya", "--dry-run", "--json"])
    assert rc == 0
    out = capsys.readouterr().out
    assert "DRY_RUN_OK" in out
    payload = _json_line(out)
    assert payload["dry_run"] is True
    assert payload["items"] == [{"mode": "direct", "voice": "Puck", "chars": 13, "cost": 13}]


def test_cli_dry_run_rejects_blank_text(capsys):
    rc = cli.main(["--text", "   ", "--dry-run", "--json"])
    assert rc == 1
    assert _json_line(capsys.readouterr().out)["error"] == "TEXT_REQUIRED"


def test_cli_dry_run_dub(tmp_path, capsys):
    clip = tmp_path / "clip.mp3"
    clip.write_bytes(b"mp3")
    rc = cli.main(["--mode", "dub", "--audio", str(clip), "--language", "Spanish", "--dry-run", "--json"])
    assert rc == 0
    item = _json_line(capsys.readouterr().out)["items"][0]
    assert item["mime_type"] == "audio/mpeg"
    assert item["target_language"] == "Spanish"
    assert item["cost"] is None


def test_cli_requires_text():
    with pytest.raises(SystemExit):
        cli.main(["--dry-run"])


def test_cli_unknown_voice(capsys):
    rc = cli.main(["Hi", "--voice", "Nobody", "--dry-run", "--json"])
    assert rc == 1
    assert _json_line(capsys.readouterr().out)["error"] == "VOICE_NOT_FOUND"


def test_cli_synthesize(tmp_path, capsys):
    out_path = tmp_path / "hello.wav"
    model = FakeSpeechModel()
    rc = cli.main(["Hello", "--voice", "Kore", "--out", str(out_path), "--json"],
                  pipeline=GenerationPipeline(model))
    assert rc == 0
    out = capsys.readouterr().out
    assert "CLI_OK" in out
    assert out_path.read_bytes()[:4] == b"RIFF"
    assert model.synth_calls == [("Hello", "Kore")]
    assert _json_line(out)["items"][0]["cost"] == 5


def test_cli_batch(tmp_path, capsys):
    lines = tmp_path / "lines.txt"
    lines.write_text("one\n\ntwo\n", encoding="utf-8")
    out_dir = tmp_path / "out"
    rc = cli.main(["--file", str(lines), "--out", str(out_dir)], pipeline=GenerationPipeline(FakeSpeechModel()))
    assert rc == 0
    assert sorted(p.name for p in out_dir.iterdir()) == ["item_001.wav", "item_002.wav"]


def test_cli_convert(tmp_path, capsys):
    clip = tmp_path / "clip.wav"
    clip.write_bytes(b"RIFF-clip")
    model = FakeSpeechModel(transcript="Spoken words")
    rc = cli.main(["--mode", "convert", "--audio", str(clip), "--out", str(tmp_path / "o.wav"), "--json"],
                  pipeline=GenerationPipeline(model))
    assert rc == 0
    assert _json_line(capsys.readouterr().out)["items"][0]["text"] == "Spoken words"
    assert model.text_calls[0][0] == b"RIFF-clip"


def test_cli_generation_failure(tmp_path, capsys):
    model = FakeSpeechModel()
    model.synth_error = RuntimeError("quota exhausted")
    rc = cli.main(["Hi", "--out", str(tmp_path / "o.wav"), "--json"], pipeline=GenerationPipeline(model))
    assert rc == 1
    assert _json_line(capsys.readouterr().out)["error"] == "UPSTREAM_QUOTA_EXCEEDED"


def test_cli_voices(capsys):
    rc = cli.main(["--voices", "--query", "asmr", "--json"])
    assert rc == 0
    voices = _json_line(capsys.readouterr().out)["voices"]
    assert [v["id"] for v in voices] == ["Zephyr"]
