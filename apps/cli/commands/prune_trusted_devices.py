from __future__ import annotations

import argparse
import json
import logging
import os
from dataclasses import asdict, dataclass
from typing import Mapping, Sequence

from apps.cli.wiring.modules.identity import build_trusted_device_ledger

log = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class PruneTrustedDevicesReport:
    pruned_count: int


class PruneTrustedDevicesCli:
    def __init__(self, *, environ: Mapping[str, str] | None = None) -> None:
        self._environ = os.environ if environ is None else environ

    def run(self, argv: Sequence[str]) -> int:
        ns = _build_parser().parse_args(list(argv))

        try:
            ledger = build_trusted_device_ledger(environ=self._environ)
        except ValueError as error:
            log.error("prune-trusted-devices misconfigured: %s", error)
            return 2

        report = PruneTrustedDevicesReport(pruned_count=ledger.prune_expired())

        if ns.report_format == "json":
            print(json.dumps(asdict(report), ensure_ascii=False))
        else:
            print(
                "prune-trusted-devices report:\n"
                f"- expired devices deleted: {report.pruned_count}\n"
            )
        return 0


def _build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="prune-trusted-devices")
    p.add_argument(
        "--report-format",
        choices=("text", "json"),
        default="text",
        help="Output format for the final report (default: text)",
    )
    return p
