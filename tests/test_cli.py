"""Tests for the command-line interface."""

import argparse
import json
import subprocess
from unittest.mock import patch

import pytest
import yaml

from narrated_video.cli.main import cmd_chunk, cmd_render, cmd_timeline, main


@pytest.fixture
def script_file(tmp_path, sample_script):
    path = tmp_path / "script.txt"
    path.write_text(sample_script)
    return path


@pytest.fixture
def request_file(tmp_path, sample_script):
    path = tmp_path / "briefing.yaml"
    path.write_text(
        yaml.dump(
            {
                "script": sample_script,
                "title": "Daily Briefing",
                "topics": [{"title": "SEC Delays ETF Decision"}],
                "prices": [{"symbol": "BTC", "price": 64250, "change_24h": 4.1}],
            }
        )
    )
    return path


class TestMain:
    """Tests for argument parsing."""

    def test_no_command_prints_help(self, capsys):
        assert main([]) == 0
        assert "render" in capsys.readouterr().out

    def test_unknown_command(self):
        with pytest.raises(SystemExit):
            main(["publish"])

    def test_timeline_requires_duration(self, script_file):
        with pytest.raises(SystemExit):
            main(["timeline", str(script_file)])

    def test_dispatches_to_command(self, script_file, capsys):
        with patch("narrated_video.cli.main._setup_logging"):
            assert main(["chunk", str(script_file)]) == 0
        assert "1 chunk(s)" in capsys.readouterr().out


class TestCmdChunk:
    """Tests for the chunk command."""

    def test_missing_script(self, tmp_path):
        args = argparse.Namespace(script=str(tmp_path / "missing.txt"), max_chars=4096)
        assert cmd_chunk(args) == 1

    def test_small_limit_gives_several_chunks(self, script_file, capsys):
        args = argparse.Namespace(script=str(script_file), max_chars=120)
        assert cmd_chunk(args) == 0
        assert "limit 120 chars" in capsys.readouterr().out


class TestCmdTimeline:
    """Tests for the timeline command."""

    def _args(self, script_file, **overrides):
        values = dict(
            script=str(script_file),
            duration=300.0,
            topics=None,
            no_prices=False,
            no_collectibles=False,
            config=None,
        )
        values.update(overrides)
        return argparse.Namespace(**values)

    def test_prints_chapters(self, script_file, tmp_path, capsys, monkeypatch):
        monkeypatch.chdir(tmp_path)
        topics = tmp_path / "topics.json"
        topics.write_text(json.dumps({"topics": [{"title": "SEC Delays ETF Decision"}]}))

        assert cmd_timeline(self._args(script_file, topics=str(topics))) == 0

        out = capsys.readouterr().out
        assert "0:00 - Intro" in out
        assert "- SEC Delays ETF Decision" in out
        assert "5:00 - Outro" in out

    def test_topic_list_of_strings(self, script_file, tmp_path, capsys, monkeypatch):
        monkeypatch.chdir(tmp_path)
        topics = tmp_path / "topics.yaml"
        topics.write_text(yaml.dump(["Ethereum Staking Record"]))

        assert cmd_timeline(self._args(script_file, topics=str(topics), no_collectibles=True)) == 0
        assert "NFT Floor Prices" not in capsys.readouterr().out

    def test_invalid_duration(self, script_file, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        assert cmd_timeline(self._args(script_file, duration=0.0)) == 1

    def test_missing_script(self, tmp_path):
        assert cmd_timeline(self._args(tmp_path / "missing.txt")) == 1


class TestCmdRender:
    """Tests for the render command."""

    def _args(self, request, output=None, tts="mock"):
        return argparse.Namespace(request=str(request), output=output, tts=tts, config=None)

    def test_missing_request(self, tmp_path):
        assert cmd_render(self._args(tmp_path / "missing.yaml")) == 1

    def test_invalid_request(self, tmp_path):
        path = tmp_path / "bad.yaml"
        path.write_text(yaml.dump({"title": "No script"}))
        assert cmd_render(self._args(path)) == 1

    def test_render_with_mock_services(self, request_file, tmp_path, capsys, monkeypatch):
        monkeypatch.chdir(tmp_path)
        completed = subprocess.CompletedProcess([], 0, "", "")

        with patch("narrated_video.pipeline.synthesis.get_audio_duration", return_value=90.0), \
                patch("narrated_video.render.compositor.subprocess.run", return_value=completed) as mock_run:
            code = cmd_render(self._args(request_file, output=str(tmp_path / "video.mp4")))

        assert code == 0
        cmd = mock_run.call_args.args[0]
        assert cmd[-1] == str(tmp_path / "video.mp4")
        narration = cmd[cmd.index("-i", cmd.index("-i") + 1) + 1]
        assert narration.endswith(".wav")
        out = capsys.readouterr().out
        assert "Video ready" in out
        assert "1:30 - Outro" in out

    def test_render_failure(self, request_file, tmp_path, capsys, monkeypatch):
        monkeypatch.chdir(tmp_path)
        failed = subprocess.CompletedProcess([], 1, "", "Invalid filter graph\n")

        with patch("narrated_video.pipeline.synthesis.get_audio_duration", return_value=90.0), \
                patch("narrated_video.render.compositor.subprocess.run", return_value=failed):
            code = cmd_render(self._args(request_file))

        assert code == 1
        assert "Invalid filter graph" in capsys.readouterr().out
