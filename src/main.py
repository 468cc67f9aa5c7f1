from __future__ import annotations

import sys

from repairdesk.bootstrap import build_services, setup_logging
from repairdesk.cli import run_cli
from repairdesk.config import ConfigError, load_config
from repairdesk.db import DbError


def main() -> int:
    try:
        cfg = load_config(sys.argv[1] if len(sys.argv) > 1 else "config.toml")
        setup_logging(cfg.log_level)
        services = build_services(cfg)
        services.scheduler.start()
        try:
            run_cli(services)
        finally:
            services.scheduler.stop(timeout=5)
        services.save_snapshot()
        return 0
    except ConfigError as e:
        print(f"[CONFIG ERROR] {e}")
        return 2
    except DbError as e:
        print(f"[DB ERROR] {e}")
        return 3
    except KeyboardInterrupt:
        print("\nInterrupted.")
        return 130


if __name__ == "__main__":
    raise SystemExit(main())
