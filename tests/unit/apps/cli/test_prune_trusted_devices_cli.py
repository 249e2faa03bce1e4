from __future__ import annotations

import json

import pytest

import apps.cli.commands.prune_trusted_devices as prune_module
from apps.cli.main.main import main
from apps.cli.wiring.modules.identity import build_trusted_device_ledger


class _FakeLedger:
    def __init__(self, *, pruned: int) -> None:
        self._pruned = pruned
        self.calls = 0

    def prune_expired(self) -> int:
        self.calls += 1
        return self._pruned


def test_prune_prints_json_report(
    monkeypatch: pytest.MonkeyPatch,
    capsys: pytest.CaptureFixture[str],
) -> None:
    ledger = _FakeLedger(pruned=3)
    monkeypatch.setattr(prune_module, "build_trusted_device_ledger", lambda *, environ: ledger)

    exit_code = prune_module.PruneTrustedDevicesCli(environ={}).run(["--report-format", "json"])

    assert exit_code == 0
    assert ledger.calls == 1
    assert json.loads(capsys.readouterr().out) == {"pruned_count": 3}


def test_prune_prints_text_report_by_default(
    monkeypatch: pytest.MonkeyPatch,
    capsys: pytest.CaptureFixture[str],
) -> None:
    monkeypatch.setattr(
        prune_module,
        "build_trusted_device_ledger",
        lambda *, environ: _FakeLedger(pruned=0),
    )

    exit_code = prune_module.PruneTrustedDevicesCli(environ={}).run([])

    assert exit_code == 0
    assert "- expired devices deleted: 0" in capsys.readouterr().out


def test_prune_without_dsn_exits_with_configuration_error() -> None:
    assert prune_module.PruneTrustedDevicesCli(environ={}).run([]) == 2


def test_ledger_builder_requires_dsn() -> None:
    with pytest.raises(ValueError, match="IDENTITY_PG_DSN must be set"):
        build_trusted_device_ledger(environ={"IDENTITY_PG_DSN": "  "})


def test_main_dispatch_rejects_missing_and_unknown_commands(
    capsys: pytest.CaptureFixture[str],
) -> None:
    assert main([]) == 2
    assert main(["backfill-candles"]) == 2
    assert "Unknown command: backfill-candles" in capsys.readouterr().out
