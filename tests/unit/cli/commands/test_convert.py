"""Tests for the convert command."""

import json

import pytest
from typer.testing import CliRunner

from docgate.cli.main import app


@pytest.fixture
def runner():
    """Create CLI test runner."""
    return CliRunner()


@pytest.fixture
def source_file(temp_dir):
    """An input document with a name that needs no sanitizing."""
    path = temp_dir / "Report (FINAL) v2.docx"
    path.write_bytes(b"source document")
    return path


class TestConvertCommand:
    """Tests for docgate convert."""

    def test_success(self, runner, isolated_config, make_engine_config, source_file, temp_dir):
        """Test a successful conversion exits 0 and writes the output."""
        isolated_config({"engines": [make_engine_config("fake").model_dump()]})
        out = temp_dir / "out"

        result = runner.invoke(app, ["convert", str(source_file), "--to", "pdf", "-o", str(out)])

        assert result.exit_code == 0
        assert (out / "Report (FINAL) v2.pdf").read_bytes() == b"converted:source document"

    def test_json_output(self, runner, isolated_config, make_engine_config, source_file):
        """Test --json prints the public result without internal paths."""
        isolated_config({"engines": [make_engine_config("fake").model_dump()]})

        result = runner.invoke(app, ["convert", str(source_file), "--to", ".PDF", "--json"])

        assert result.exit_code == 0
        payload = json.loads(result.stdout)
        assert payload["success"] is True
        assert payload["engine"] == "fake"
        assert payload["output_name"] == "Report (FINAL) v2.pdf"
        assert payload["attempts"][0]["outcome"] == "success"
        assert "diagnostic" not in payload["attempts"][0]

    def test_fallback_reported(self, runner, isolated_config, make_engine_config, source_file):
        """Test a fallback conversion lists both attempts."""
        isolated_config(
            {
                "engines": [
                    make_engine_config("primary", "crash", priority=10).model_dump(),
                    make_engine_config("secondary", priority=20).model_dump(),
                ]
            }
        )

        result = runner.invoke(app, ["convert", str(source_file), "--to", "pdf", "--json"])

        assert result.exit_code == 0
        payload = json.loads(result.stdout)
        assert [a["engine"] for a in payload["attempts"]] == ["primary", "secondary"]
        assert [a["outcome"] for a in payload["attempts"]] == ["crashed", "success"]

    def test_conversion_failed(self, runner, isolated_config, make_engine_config, source_file):
        """Test an exhausted chain exits 1 with a generic message."""
        isolated_config({"engines": [make_engine_config("broken", "crash").model_dump()]})

        result = runner.invoke(app, ["convert", str(source_file), "--to", "pdf", "--json"])

        assert result.exit_code == 1
        payload = json.loads(result.stdout)
        assert payload["error"] == "conversion_failed"
        assert payload["error_kind"] == "all_engines_exhausted"
        assert "engine blew up" not in result.stdout

    def test_unsupported(self, runner, isolated_config, make_engine_config, source_file):
        """Test a missing route exits 2."""
        isolated_config({"engines": [make_engine_config("fake").model_dump()]})

        result = runner.invoke(app, ["convert", str(source_file), "--to", "epub"])

        assert result.exit_code == 2
        assert "unsupported_conversion" in result.stdout

    def test_source_format_override(
        self, runner, isolated_config, make_engine_config, temp_dir
    ):
        """Test --from routes by the given format instead of the extension."""
        isolated_config(
            {"engines": [make_engine_config("fake", conversions=["md->html"]).model_dump()]}
        )
        notes = temp_dir / "notes.txt"
        notes.write_text("# Notes", encoding="utf-8")

        result = runner.invoke(
            app, ["convert", str(notes), "--from", "markdown", "--to", "html", "--json"]
        )

        assert result.exit_code == 0
        assert json.loads(result.stdout)["output_name"] == "notes.html"

    def test_missing_target(self, runner, isolated_config, source_file):  # noqa: ARG002
        """Test --to is required."""
        result = runner.invoke(app, ["convert", str(source_file)])

        assert result.exit_code == 2

    def test_invalid_target(self, runner, isolated_config, source_file):  # noqa: ARG002
        """Test a malformed format is a usage error."""
        result = runner.invoke(app, ["convert", str(source_file), "--to", "p/f"])

        assert result.exit_code == 2

    def test_missing_input(self, runner, isolated_config, temp_dir):  # noqa: ARG002
        """Test a nonexistent input file is a usage error."""
        result = runner.invoke(app, ["convert", str(temp_dir / "missing.docx"), "--to", "pdf"])

        assert result.exit_code == 2

    def test_invalid_engine_template(
        self, runner, isolated_config, make_engine_config, source_file
    ):
        """Test a broken engine template exits 1 before any conversion."""
        bad = make_engine_config("bad").model_dump()
        bad["args"] = ["{nope}"]
        isolated_config({"engines": [bad]})

        result = runner.invoke(app, ["convert", str(source_file), "--to", "pdf"])

        assert result.exit_code == 1
        assert "nope" in result.stdout
