"""
Tests for the snatch CLI (no browser is started)
"""

import json

import pytest

from snatch_core import cli
from snatch_core.models import BatchJobResult, BatchResult, TransformResult
from snatch_core.output import OutputWriter


def parse_extract(*argv):
    return cli.build_parser().parse_args(["extract", *argv])


class TestValidateExtractArgs:
    def test_valid(self):
        assert cli.validate_extract_args(parse_extract("example.com", "-s", ".card")) == []

    def test_no_mode(self):
        errors = cli.validate_extract_args(parse_extract("example.com"))

        assert errors == ["One of --selector, --find or --interactive is required"]

    def test_every_problem_reported(self):
        args = parse_extract("example.com", "-s", ".card", "-f", "card", "--framework", "angular",
                             "--styling", "sass", "-n", "card")

        errors = cli.validate_extract_args(args)

        assert len(errors) == 4
        assert errors[0] == "Options --selector and --find cannot be used together"


class TestMain:
    def test_url_shorthand_inserts_extract(self, monkeypatch):
        seen = {}

        def fake_extract(args):
            seen["url"] = args.url
            seen["selector"] = args.selector
            return 0

        monkeypatch.setattr(cli, "cmd_extract", fake_extract)

        assert cli.main(["example.com", "-s", ".card"]) == 0
        assert seen == {"url": "example.com", "selector": ".card"}

    def test_invalid_extract_exits_before_browser(self):
        assert cli.main(["example.com"]) == 1

    def test_no_command(self, capsys):
        assert cli.main([]) == 1
        assert "usage" in capsys.readouterr().out.lower()

    def test_list_empty(self, tmp_path, capsys):
        assert cli.main(["list", "-d", str(tmp_path)]) == 0
        assert "No components found" in capsys.readouterr().out

    def test_list_and_clean(self, tmp_path, capsys):
        OutputWriter(str(tmp_path)).write("Card", TransformResult(code="x", filename="Card.tsx"))

        assert cli.main(["list", "-d", str(tmp_path)]) == 0
        assert "Card" in capsys.readouterr().out

        assert cli.main(["clean", "Card", "-d", str(tmp_path)]) == 0
        assert not (tmp_path / "Card").exists()

        assert cli.main(["clean", "Card", "-d", str(tmp_path)]) == 1

    def test_clean_rejects_path(self, tmp_path):
        assert cli.main(["clean", "../x", "-d", str(tmp_path)]) == 1

    def test_batch_invalid_file(self, tmp_path):
        path = tmp_path / "batch.json"
        path.write_text(json.dumps({"components": []}), encoding="utf-8")

        assert cli.main(["batch", str(path)]) == 1

    def test_batch_runs_coordinator(self, tmp_path, monkeypatch, capsys):
        path = tmp_path / "batch.json"
        path.write_text(json.dumps({"components": [
            {"url": "https://example.com", "selector": "nav", "name": "Nav"},
        ]}), encoding="utf-8")
        created = {}

        class FakeCoordinator:
            def __init__(self, config, session_mode="per-job"):
                created["mode"] = session_mode

            async def run(self, batch):
                return BatchResult(total=1, succeeded=1, failed=0, total_time=12.0,
                                   results=[BatchJobResult(name="Nav", success=True)])

        monkeypatch.setattr(cli, "BatchCoordinator", FakeCoordinator)
        monkeypatch.chdir(tmp_path)

        assert cli.main(["batch", str(path), "--shared-session"]) == 0
        assert created["mode"] == "shared"
        assert "1/1 succeeded" in capsys.readouterr().out


@pytest.mark.parametrize("argv", [["-h"], ["--help"]])
def test_help_is_not_a_url(argv):
    with pytest.raises(SystemExit) as exc_info:
        cli.main(argv)

    assert exc_info.value.code == 0
