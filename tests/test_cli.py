import json
from dataclasses import replace

import pytest
from typer.testing import CliRunner

from codeplug_flasher import cli
from codeplug_flasher.core import actions, safety
from codeplug_flasher.core.channels import synthesize_full_codeplug
from codeplug_flasher.protocol.bf888 import DRY_RUN_ENV, MEM_SIZE

from conftest import FakeBF888, FakeKT8900, pattern_image

runner = CliRunner()


@pytest.fixture
def bf888_radio(monkeypatch):
    radio = FakeBF888()
    factory = lambda: radio

    monkeypatch.setattr(
        cli, "core_download_codeplug",
        lambda port, model, progress_cb=None: actions.download_codeplug(
            port, model, backend_factory=factory, settle_delay=0, progress_cb=progress_cb,
        ),
    )
    monkeypatch.setattr(
        cli, "core_upload_codeplug",
        lambda port, model, data, safety_ctx, progress_cb=None: actions.upload_codeplug(
            port, model, data, safety_ctx, backend_factory=factory, settle_delay=0, progress_cb=progress_cb,
        ),
    )
    monkeypatch.setattr(
        cli, "core_verify_codeplug",
        lambda port, model, safety_ctx: actions.verify_codeplug(
            port, model, safety_ctx, backend_factory=factory, settle_delay=0,
        ),
    )
    return radio


def test_list_models():
    result = runner.invoke(cli.app, ["list-models"])
    assert result.exit_code == 0
    assert "bf-888" in result.output
    assert "kt-8900" in result.output


def test_unknown_model_is_usage_error():
    result = runner.invoke(cli.app, ["download", "--port", "/dev/null", "--model", "uv-5r"])
    assert result.exit_code != 0


def test_download_saves_image(bf888_radio, tmp_path):
    out = tmp_path / "radio.img"
    result = runner.invoke(cli.app, ["download", "-p", "/dev/ttyUSB0", "-m", "bf-888", "-o", str(out)])

    assert result.exit_code == 0, result.output
    assert out.read_bytes() == bytes(bf888_radio.memory)


def test_download_json_output(bf888_radio):
    result = runner.invoke(cli.app, ["download", "-p", "/dev/ttyUSB0", "-m", "bf-888", "--json"])

    assert result.exit_code == 0, result.output
    payload = json.loads(result.stdout)
    assert payload["ok"] is True
    assert payload["bytes_len"] == MEM_SIZE


def test_model_from_environment(bf888_radio):
    result = runner.invoke(
        cli.app, ["download", "--json"],
        env={"SERIAL_PORT": "/dev/ttyUSB1", "RADIO_MODEL": "BF-888"},
    )
    assert result.exit_code == 0, result.output


def test_upload_requires_write_flag(bf888_radio, tmp_path):
    image = tmp_path / "in.img"
    image.write_bytes(pattern_image(MEM_SIZE, seed=5))

    result = runner.invoke(cli.app, ["upload", "-p", "/dev/ttyUSB0", "-m", "bf-888", "--in", str(image)])

    assert result.exit_code != 0
    assert bf888_radio.written_blocks == []


def test_upload_with_confirm_token(bf888_radio, tmp_path):
    data = pattern_image(MEM_SIZE, seed=5)
    image = tmp_path / "in.img"
    image.write_bytes(data)

    result = runner.invoke(cli.app, [
        "upload", "-p", "/dev/ttyUSB0", "-m", "bf-888", "--in", str(image),
        "--write", "--confirm", "WRITE",
    ])

    assert result.exit_code == 0, result.output
    assert bytes(bf888_radio.memory[:0x110]) == data[:0x110]


def test_upload_dry_run_needs_no_confirmation(bf888_radio, tmp_path):
    image = tmp_path / "in.img"
    image.write_bytes(pattern_image(MEM_SIZE, seed=5))

    result = runner.invoke(cli.app, [
        "upload", "-p", "/dev/ttyUSB0", "-m", "bf-888", "--in", str(image), "--dry-run",
    ])

    assert result.exit_code == 0, result.output
    assert bf888_radio.written_blocks == []


def test_upload_missing_image(tmp_path):
    result = runner.invoke(cli.app, [
        "upload", "-p", "/dev/ttyUSB0", "-m", "bf-888", "--in", str(tmp_path / "nope.img"),
    ])
    assert result.exit_code == 1


def test_verify_reports_failed_channel(monkeypatch):
    radio = FakeBF888(ignore_writes_at={0x0040})
    monkeypatch.setattr(
        cli, "core_verify_codeplug",
        lambda port, model, safety_ctx: actions.verify_codeplug(
            port, model, safety_ctx, backend_factory=lambda: radio, settle_delay=0,
        ),
    )

    result = runner.invoke(cli.app, [
        "verify", "-p", "/dev/ttyUSB0", "-m", "bf-888", "--write", "--confirm", "WRITE",
    ])

    assert result.exit_code == 1
    assert "First mismatching channel: 4" in result.output


def test_verify_kt8900_passes(monkeypatch):
    radio = FakeKT8900()
    monkeypatch.setattr(
        cli, "core_verify_codeplug",
        lambda port, model, safety_ctx: actions.verify_codeplug(
            port, model, safety_ctx, backend_factory=lambda: radio, settle_delay=0,
        ),
    )

    result = runner.invoke(cli.app, [
        "verify", "-p", "/dev/ttyUSB0", "-m", "kt-8900", "--write", "--confirm", "WRITE",
    ])
    assert result.exit_code == 0, result.output


def test_channels_table(tmp_path):
    image = tmp_path / "bf.img"
    image.write_bytes(synthesize_full_codeplug(pattern_image(MEM_SIZE)))

    result = runner.invoke(cli.app, ["channels", str(image)])

    assert result.exit_code == 0, result.output
    assert "462.00000" in result.output
    assert "462.18750" in result.output


def test_channels_rejects_short_image(tmp_path):
    image = tmp_path / "short.img"
    image.write_bytes(b"\x00" * 32)

    result = runner.invoke(cli.app, ["channels", str(image)])
    assert result.exit_code == 1


def test_environment_dry_run_needs_no_confirmation(bf888_radio, tmp_path, monkeypatch):
    monkeypatch.setenv(DRY_RUN_ENV, "1")
    image = tmp_path / "in.img"
    image.write_bytes(pattern_image(MEM_SIZE, seed=5))

    result = runner.invoke(cli.app, ["upload", "-p", "/dev/ttyUSB0", "-m", "bf-888", "--in", str(image)])

    assert result.exit_code == 0, result.output
    assert "dry run" in result.output
    assert bf888_radio.written_blocks == []


def test_verify_refused_under_environment_dry_run(bf888_radio, monkeypatch):
    monkeypatch.setenv(DRY_RUN_ENV, "1")

    result = runner.invoke(cli.app, [
        "verify", "-p", "/dev/ttyUSB0", "-m", "bf-888", "--write", "--confirm", "WRITE",
    ])

    assert result.exit_code == 1
    assert "BF888_DRY_RUN" in result.output
    assert bf888_radio.writes == []


def test_interactive_confirmation_prompts_once(bf888_radio, tmp_path, monkeypatch):
    prompts = []
    real_context = safety.create_cli_safety_context
    monkeypatch.setattr(
        cli, "create_cli_safety_context",
        lambda **kwargs: replace(real_context(**kwargs), interactive=True),
    )
    monkeypatch.setattr(cli.typer, "prompt", lambda text: prompts.append(text) or "WRITE")
    image = tmp_path / "in.img"
    image.write_bytes(pattern_image(MEM_SIZE, seed=5))

    result = runner.invoke(cli.app, ["upload", "-p", "/dev/ttyUSB0", "-m", "bf-888", "--in", str(image), "--write"])

    assert result.exit_code == 0, result.output
    assert len(prompts) == 1
    assert len(bf888_radio.written_blocks) == 48
