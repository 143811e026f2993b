"""Integration tests for the CLI layer."""

from __future__ import annotations

from pathlib import Path

import pytest
from click.testing import CliRunner
from PIL import Image

from dmi_toolbox.cli.main import cli
from dmi_toolbox.core.config import CONFIG_DIR_ENV
from dmi_toolbox.tools.alpha_mask._dmi import Icon, IconState, load_dmi, save_dmi


@pytest.fixture(autouse=True)
def isolated_config(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Point the config manager at an empty per-test directory."""
    config_dir = tmp_path / "config"
    monkeypatch.setenv(CONFIG_DIR_ENV, str(config_dir))
    return config_dir


@pytest.fixture()
def input_dmi(tmp_path: Path) -> Path:
    """A 3x3 icon with one-direction states 'idle' and 'walk'."""
    frame = Image.new("RGBA", (3, 3), (0, 0, 0, 255))
    path = tmp_path / "mob.dmi"
    states = (IconState("idle", images=(frame,)), IconState("walk", images=(frame,)))
    save_dmi(Icon(width=3, height=3, states=states), path)
    return path


@pytest.fixture()
def base_image(tmp_path: Path) -> Path:
    """A 3x3 opaque white mask."""
    path = tmp_path / "base.png"
    Image.new("RGBA", (3, 3), (255, 255, 255, 255)).save(str(path))
    return path


class TestAlphaMaskCommand:
    """Tests for the ``alpha-mask`` CLI sub-command."""

    def test_help_shows_options(self) -> None:
        """``--help`` lists the command's options."""
        result = CliRunner().invoke(cli, ["alpha-mask", "--help"])

        assert result.exit_code == 0
        for option in ("--input", "--states", "--base-image", "--output", "--dry-run"):
            assert option in result.output

    def test_writes_new_file(self, input_dmi: Path, base_image: Path, tmp_path: Path) -> None:
        """Happy path: masks the requested state into a new file."""
        out = tmp_path / "out.dmi"
        result = CliRunner().invoke(
            cli,
            [
                "alpha-mask",
                "--input",
                str(input_dmi),
                "--states",
                "walk",
                "--base-image",
                str(base_image),
                "--output",
                str(out),
            ],
        )

        assert result.exit_code == 0, result.output
        assert "Wrote 1 states" in result.output
        assert load_dmi(out).state_names == ["walk"]

    def test_appends_to_existing_file(self, input_dmi: Path, base_image: Path, tmp_path: Path) -> None:
        """An existing output file gets the states appended."""
        out = tmp_path / "out.dmi"
        args = ["alpha-mask", "--input", str(input_dmi), "--base-image", str(base_image), "--output", str(out)]
        runner = CliRunner()
        runner.invoke(cli, args)
        result = runner.invoke(cli, args)

        assert result.exit_code == 0, result.output
        assert "Appended 2 states" in result.output
        assert "(4 states in file)" in result.output
        assert load_dmi(out).state_names == ["idle", "walk", "idle", "walk"]

    def test_prints_progress(self, input_dmi: Path, base_image: Path, tmp_path: Path) -> None:
        """Progress events are echoed per state."""
        out = tmp_path / "o.dmi"
        result = CliRunner().invoke(
            cli,
            ["alpha-mask", "--input", str(input_dmi), "--base-image", str(base_image), "--output", str(out)],
        )

        assert "Masked 'idle' (1/2)" in result.output
        assert "Masked 'walk' (2/2)" in result.output

    def test_states_default_from_config(
        self, input_dmi: Path, base_image: Path, tmp_path: Path, isolated_config: Path
    ) -> None:
        """Without --states the alpha_mask tool config decides."""
        tools_dir = isolated_config / "tools"
        tools_dir.mkdir(parents=True)
        (tools_dir / "alpha_mask.toml").write_text('states = "idle"\n')
        out = tmp_path / "out.dmi"

        result = CliRunner().invoke(
            cli,
            ["alpha-mask", "--input", str(input_dmi), "--base-image", str(base_image), "--output", str(out)],
        )

        assert result.exit_code == 0, result.output
        assert load_dmi(out).state_names == ["idle"]

    def test_dry_run_lists_states(self, input_dmi: Path) -> None:
        """``--dry-run`` prints the states without needing a mask."""
        result = CliRunner().invoke(cli, ["alpha-mask", "--input", str(input_dmi), "--dry-run"])

        assert result.exit_code == 0, result.output
        assert "States (2): idle (1d/1f), walk (1d/1f)" in result.output

    def test_missing_base_image_is_usage_error(self, input_dmi: Path, tmp_path: Path) -> None:
        """Without --dry-run the mask and output are mandatory."""
        result = CliRunner().invoke(cli, ["alpha-mask", "--input", str(input_dmi), "--output", str(tmp_path / "o.dmi")])

        assert result.exit_code == 2
        assert "--base-image" in result.output

    def test_missing_input_file_errors(self, base_image: Path, tmp_path: Path) -> None:
        """A non-existent input exits with an error."""
        result = CliRunner().invoke(
            cli,
            ["alpha-mask", "--input", str(tmp_path / "nope.dmi"), "--base-image", str(base_image), "--output", "o.dmi"],
        )

        assert result.exit_code != 0

    def test_invalid_input_aborts_without_output(self, base_image: Path, tmp_path: Path) -> None:
        """A corrupt input DMI fails the run and writes nothing."""
        bad = tmp_path / "bad.dmi"
        bad.write_bytes(b"nope")
        out = tmp_path / "o.dmi"

        result = CliRunner().invoke(
            cli, ["alpha-mask", "--input", str(bad), "--base-image", str(base_image), "--output", str(out)]
        )

        assert result.exit_code != 0
        assert not out.exists()


class TestTopLevelCli:
    """Tests for the root CLI group."""

    def test_version_flag(self) -> None:
        """``--version`` prints the package version."""
        result = CliRunner().invoke(cli, ["--version"])

        assert result.exit_code == 0
        assert "0.1.0" in result.output

    def test_help_flag_shows_usage(self) -> None:
        """``--help`` on the root group shows usage text."""
        result = CliRunner().invoke(cli, ["--help"])

        assert result.exit_code == 0
        assert "DMI Toolbox" in result.output
        assert "alpha-mask" in result.output

    def test_verbose_flag_is_accepted(self, input_dmi: Path) -> None:
        """``-vv`` may precede a sub-command."""
        result = CliRunner().invoke(cli, ["-vv", "alpha-mask", "--input", str(input_dmi), "--dry-run"])

        assert result.exit_code == 0, result.output
