from __future__ import annotations

import logging
import sys

from apps.cli.commands.prune_trusted_devices import PruneTrustedDevicesCli


def _configure_logging() -> None:
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )


def main(argv: list[str] | None = None) -> int:
    _configure_logging()
    args = argv if argv is not None else sys.argv[1:]

    if not args:
        print(
            "Usage:\n"
            "  prune-trusted-devices [--report-format text|json]\n"
        )
        return 2

    cmd = args[0]
    rest = args[1:]

    if cmd == "prune-trusted-devices":
        return PruneTrustedDevicesCli().run(rest)

    print(f"Unknown command: {cmd}")
    return 2


if __name__ == "__main__":
    raise SystemExit(main())
