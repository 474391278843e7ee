"""Tests for engine descriptors and argument templates."""

import sys
from pathlib import Path

import pytest

from docgate.config.settings import EngineConfig
from docgate.core.workspace import Workspace
from docgate.engines.descriptor import EngineDescriptor, template_fields, validate_template
from docgate.exceptions import ConfigurationError


def make_descriptor(args: tuple[str, ...], **kwargs) -> EngineDescriptor:
    return EngineDescriptor(
        name=kwargs.pop("name", "engine"),
        executable=kwargs.pop("executable", "soffice"),
        args=args,
        timeout=kwargs.pop("timeout", 10.0),
        **kwargs,
    )


class TestTemplateValidation:
    """Tests for argument template validation."""

    def test_known_placeholders(self):
        """Test every documented placeholder is accepted."""
        validate_template(
            ["{input}", "{input_dir}", "{output_dir}", "{output}", "{stem}", "{target}",
             "-env:UserInstallation={profile_uri}"]
        )

    def test_unknown_placeholder(self):
        """Test unknown placeholders fail at load time."""
        with pytest.raises(ConfigurationError, match="Unknown placeholder"):
            make_descriptor(("{inptu}",))

    def test_positional_and_attribute_fields_rejected(self):
        """Test positional and attribute lookups are not allowed."""
        with pytest.raises(ConfigurationError):
            make_descriptor(("{0}",))
        with pytest.raises(ConfigurationError):
            make_descriptor(("{input.parent}",))

    def test_malformed_template(self):
        """Test unbalanced braces are a configuration error."""
        with pytest.raises(ConfigurationError, match="Malformed"):
            template_fields("{input")

    def test_escaped_braces_are_literal(self):
        """Test doubled braces are not placeholders."""
        assert template_fields("{{literal}}") == []

    def test_non_positive_timeout(self):
        """Test descriptors need a positive timeout."""
        with pytest.raises(ConfigurationError, match="timeout"):
            make_descriptor(("{input}",), timeout=0)


class TestBuildArgv:
    """Tests for per-attempt argument rendering."""

    async def test_substitutes_absolute_paths(self, workspace: Workspace):
        """Test placeholders become absolute workspace paths."""
        descriptor = make_descriptor(
            ("--convert-to", "{target}", "--outdir", "{output_dir}", "{input}", "{output}"),
        )

        argv = descriptor.build_argv(workspace, "pdf")

        assert argv[0] == "soffice"
        assert argv[1:3] == ["--convert-to", "pdf"]
        assert Path(argv[4]).is_absolute()
        assert argv[4] == str(workspace.output_dir.resolve())
        assert argv[5] == str(workspace.input_path.resolve())
        assert argv[6] == str(workspace.output_dir.resolve() / "Report (FINAL) v2.pdf")

    async def test_filename_is_one_argument(self, workspace: Workspace):
        """Test a filename with spaces and parentheses is never split."""
        descriptor = make_descriptor(("{input}",))

        argv = descriptor.build_argv(workspace, "pdf")

        assert len(argv) == 2
        assert argv[1].endswith("Report (FINAL) v2.docx")

    async def test_format_token_override(self, workspace: Workspace):
        """Test engine-specific target tokens are used for {target}."""
        descriptor = make_descriptor(("{target}",), format_tokens={"txt": "txt:Text"})

        assert descriptor.build_argv(workspace, "txt")[1] == "txt:Text"
        assert descriptor.build_argv(workspace, "pdf")[1] == "pdf"

    async def test_profile_uri(self, workspace: Workspace):
        """Test the profile placeholder is a file URI of the workspace profile."""
        descriptor = make_descriptor(("-env:UserInstallation={profile_uri}",))

        arg = descriptor.build_argv(workspace, "pdf")[1]

        assert arg.startswith("-env:UserInstallation=file:")
        assert arg.endswith("/profile")

    async def test_braces_in_filename_literal(self, workspace_manager):
        """Test braces in a substituted filename are not expanded again."""
        ws = await workspace_manager.create("op-braces", "{output}.docx", b"x")
        descriptor = make_descriptor(("{input}",))

        argv = descriptor.build_argv(ws, "pdf")

        assert argv[1].endswith("{output}.docx")


class TestFromConfig:
    """Tests for EngineDescriptor.from_config."""

    def test_normalises_conversions(self):
        """Test conversion pairs and token keys are normalised."""
        config = EngineConfig(
            name="lo",
            kind="libreoffice",
            args=["{input}"],
            conversions=["DOCX->PDF", ".htm->pdf"],
            format_tokens={"TXT": "txt:Text"},
            priority=5,
        )

        descriptor = EngineDescriptor.from_config(config, sys.executable)

        assert descriptor.conversions == frozenset({("docx", "pdf"), ("html", "pdf")})
        assert descriptor.supports("docx", "pdf")
        assert descriptor.target_token("txt") == "txt:Text"
        assert descriptor.priority == 5
        assert descriptor.executable == sys.executable
        assert descriptor.kind == "libreoffice"

    def test_immutable(self):
        """Test descriptors cannot be modified."""
        descriptor = make_descriptor(("{input}",))

        with pytest.raises(AttributeError):
            descriptor.timeout = 1  # type: ignore[misc]
