from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from .config import AppConfig, CalendarSyncConfig
from .db import Db
from .domain import AppState
from .integrations.google_calendar import CalendarSync, GoogleCalendarClient
from .notifications import OrderNotifier
from .repositories.state_repo import StateRepository
from .seed import initial_state
from .services.billing import BillingService
from .services.maintenance import MaintenanceScheduler
from .services.order_service import OrderService
from .services.staff_service import StaffService
from .store import Store

logger = logging.getLogger(__name__)


def setup_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


@dataclass
class Services:
    store: Store
    orders: OrderService
    billing: BillingService
    staff: StaffService
    scheduler: MaintenanceScheduler
    db: Optional[Db] = None
    state_repo: Optional[StateRepository] = None
    time_zone: str = CalendarSyncConfig.time_zone

    def save_snapshot(self) -> Optional[datetime]:
        """Write the current state to the database; returns the stored timestamp."""
        if self.db is None or self.state_repo is None:
            return None
        with self.db.transaction() as conn:
            self.state_repo.ensure_schema(conn)
            self.state_repo.save(conn, self.store.state)
        with self.db.session() as conn:
            saved_at = self.state_repo.saved_at(conn)
        logger.info("State snapshot saved at %s", saved_at)
        return saved_at


def build_calendar_sync(cfg: AppConfig) -> CalendarSync:
    sync_cfg = cfg.calendar_sync
    if not sync_cfg.enabled:
        logger.info("Calendar sync disabled (no access token)")
        return CalendarSync()
    client = GoogleCalendarClient(
        sync_cfg.access_token,
        base_url=sync_cfg.base_url,
        time_zone=sync_cfg.time_zone,
        timeout=sync_cfg.timeout_seconds,
        calendar_map=sync_cfg.calendars,
    )
    return CalendarSync(client)


def load_state(cfg: AppConfig, db: Optional[Db], repo: StateRepository) -> AppState:
    if db is not None:
        with db.transaction() as conn:
            repo.ensure_schema(conn)
            state = repo.load(conn)
        if state is not None:
            logger.info("Loaded state snapshot from database")
            return state
    return initial_state(cfg.name)


def build_services(cfg: AppConfig, state: Optional[AppState] = None) -> Services:
    db = Db(cfg.db) if cfg.db is not None else None
    repo = StateRepository()
    if state is None:
        state = load_state(cfg, db, repo)
    store = Store(state)
    sync = build_calendar_sync(cfg)
    prefix = cfg.business.order_number_prefix
    return Services(
        store=store,
        orders=OrderService(
            store=store,
            sync=sync,
            notifier=OrderNotifier(cfg.business.notification_email),
            order_number_prefix=prefix,
        ),
        billing=BillingService(store=store, tax_rate=cfg.business.tax_rate),
        staff=StaffService(store=store, sync=sync),
        scheduler=MaintenanceScheduler(
            store,
            interval_seconds=cfg.scheduler.maintenance_interval_seconds,
            order_number_prefix=prefix,
        ),
        db=db,
        state_repo=repo,
        time_zone=cfg.calendar_sync.time_zone,
    )
