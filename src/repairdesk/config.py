from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from pathlib import Path
from typing import Optional

try:
    import tomllib  # py311+
except ModuleNotFoundError:  # pragma: no cover
    tomllib = None


class ConfigError(Exception):
    pass


@dataclass(frozen=True)
class DbConfig:
    host: str
    port: int
    name: str
    user: str
    password: str
    sslmode: str = "disable"


@dataclass(frozen=True)
class BusinessConfig:
    tax_rate: Decimal = Decimal("0.18")
    order_number_prefix: str = "OS"
    notification_email: str = "notificaciones@misterservicerd.com"


@dataclass(frozen=True)
class CalendarSyncConfig:
    access_token: Optional[str] = None
    base_url: str = "https://www.googleapis.com/calendar/v3"
    time_zone: str = "America/Santo_Domingo"
    timeout_seconds: float = 15.0
    calendars: dict[str, str] = field(default_factory=dict)

    @property
    def enabled(self) -> bool:
        return bool(self.access_token)


@dataclass(frozen=True)
class SchedulerConfig:
    maintenance_interval_seconds: float = 3600.0


@dataclass(frozen=True)
class AppConfig:
    name: str
    log_level: str
    business: BusinessConfig
    calendar_sync: CalendarSyncConfig
    scheduler: SchedulerConfig
    db: Optional[DbConfig] = None


def parse_config(data: dict) -> AppConfig:
    try:
        app = data.get("app", {})
        business = data.get("business", {})
        sync = data.get("calendar_sync", {})
        scheduler = data.get("scheduler", {})
        db = data.get("db")
        tax_rate = Decimal(str(business.get("tax_rate", "0.18")))
        if not Decimal("0") <= tax_rate < Decimal("1"):
            raise ConfigError(f"business.tax_rate must be in [0, 1): {tax_rate}")
        return AppConfig(
            name=str(app.get("name", "RepairDesk")),
            log_level=str(app.get("log_level", "INFO")),
            business=BusinessConfig(
                tax_rate=tax_rate,
                order_number_prefix=str(business.get("order_number_prefix", "OS")),
                notification_email=str(business.get("notification_email", BusinessConfig.notification_email)),
            ),
            calendar_sync=CalendarSyncConfig(
                access_token=(str(sync["access_token"]) if sync.get("access_token") else None),
                base_url=str(sync.get("base_url", CalendarSyncConfig.base_url)),
                time_zone=str(sync.get("time_zone", CalendarSyncConfig.time_zone)),
                timeout_seconds=float(sync.get("timeout_seconds", 15.0)),
                calendars={str(k): str(v) for k, v in sync.get("calendars", {}).items()},
            ),
            scheduler=SchedulerConfig(
                maintenance_interval_seconds=float(scheduler.get("maintenance_interval_seconds", 3600)),
            ),
            db=(
                DbConfig(
                    host=str(db["host"]),
                    port=int(db.get("port", 5432)),
                    name=str(db["name"]),
                    user=str(db["user"]),
                    password=str(db["password"]),
                    sslmode=str(db.get("sslmode", "disable")),
                )
                if db
                else None
            ),
        )
    except ConfigError:
        raise
    except KeyError as e:
        raise ConfigError(f"Missing config key: {e}") from e
    except Exception as e:
        raise ConfigError(f"Invalid config values: {e}") from e


def load_config(path: str | Path) -> AppConfig:
    p = Path(path)
    if not p.exists():
        raise ConfigError(f"Config file not found: {p.resolve()}")

    if tomllib is None:
        raise ConfigError("tomllib not available. Use Python 3.11+.")

    try:
        data = tomllib.loads(p.read_text(encoding="utf-8"))
    except Exception as e:
        raise ConfigError(f"Failed to read config TOML: {e}") from e

    return parse_config(data)
