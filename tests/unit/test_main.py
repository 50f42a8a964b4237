# tests/unit/test_main.py - v1
"""Tests for the promptlift CLI."""

from __future__ import annotations

import json
from unittest.mock import patch

import pytest

from promptlift import main as cli
from promptlift.api import facade
from promptlift.cache.fingerprint import compute_project_signature
from promptlift.config.settings import ConfigurationError

BUTTON = "How do I create a button?"


@pytest.fixture
def cli_env(settings, docs_client):
    """CLI wired to tmp settings and the fake documentation client."""
    real_create = facade.create_orchestrator

    def factory(s):
        return real_create(s, docs_client=docs_client)

    with patch("promptlift.config.settings.load_settings", return_value=settings), \
            patch("promptlift.main._setup_logging"), \
            patch("promptlift.api.facade.create_orchestrator", side_effect=factory):
        yield settings


class TestParser:
    def test_enhance_arguments(self, tmp_path):
        args = cli._build_parser().parse_args(
            ["enhance", "p", "--no-cache", "--max-tokens", "300", "--json",
             "--context", str(tmp_path / "ctx.json")]
        )
        assert args.prompt == "p"
        assert args.no_cache is True
        assert args.max_tokens == 300
        assert args.json is True
        assert args.context == tmp_path / "ctx.json"
        assert args.func is cli._cmd_enhance

    def test_subcommands(self):
        parser = cli._build_parser()
        assert parser.parse_args(["stats"]).func is cli._cmd_stats
        assert parser.parse_args(["sweep"]).func is cli._cmd_sweep
        assert parser.parse_args(["invalidate", "abc"]).signature == "abc"

    def test_version(self, capsys):
        with pytest.raises(SystemExit) as exc:
            cli.main(["--version"])
        assert exc.value.code == 0
        assert "promptlift" in capsys.readouterr().out


class TestMain:
    def test_no_command(self, capsys):
        assert cli.main([]) == 1
        assert "usage" in capsys.readouterr().out.lower()

    def test_configuration_error(self, capsys):
        with patch(
            "promptlift.config.settings.load_settings",
            side_effect=ConfigurationError("TOKEN_BUDGET_SIMPLE must be > 0"),
        ):
            assert cli.main(["stats"]) == 2
        assert "Configuration error" in capsys.readouterr().err


class TestCommands:
    def test_enhance_prints_prompt(self, cli_env, capsys):
        assert cli.main(["enhance", BUTTON]) == 0
        captured = capsys.readouterr()
        assert captured.out.startswith(BUTTON)
        assert "## Instructions:" in captured.out
        assert "4 external calls" in captured.err

    def test_enhance_json_with_context(self, cli_env, capsys, tmp_path):
        ctx = tmp_path / "ctx.json"
        ctx.write_text(json.dumps({"dependencies": ["react"]}), encoding="utf-8")

        assert cli.main(["enhance", BUTTON, "--context", str(ctx), "--json"]) == 0
        payload = json.loads(capsys.readouterr().out)
        assert payload["success"] is True
        assert payload["contextUsed"]["docs"][0].startswith("## /react/docs Documentation:")

    def test_enhance_missing_context_file(self, cli_env, tmp_path):
        assert cli.main(["enhance", BUTTON, "--context", str(tmp_path / "nope.json")]) == 1

    def test_enhance_then_stats(self, cli_env, capsys):
        cli.main(["enhance", BUTTON])
        capsys.readouterr()

        assert cli.main(["stats"]) == 0
        out = capsys.readouterr().out
        # raw + response + 2 library + 2 docs
        assert "Entries: 6" in out
        assert "response" in out

    def test_stats_empty(self, cli_env, capsys):
        assert cli.main(["stats"]) == 0
        assert "No lookups recorded yet." in capsys.readouterr().out

    def test_invalidate(self, cli_env, capsys):
        cli.main(["enhance", BUTTON])
        capsys.readouterr()

        signature = compute_project_signature(None, None)
        assert cli.main(["invalidate", signature.upper()]) == 0
        out = capsys.readouterr().out
        assert "raw          1" in out
        assert "response     1" in out

    def test_sweep(self, cli_env, capsys):
        assert cli.main(["sweep"]) == 0
        out = capsys.readouterr().out
        assert "Expired removed:        0" in out
