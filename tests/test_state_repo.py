from __future__ import annotations

import dataclasses
from datetime import date
from decimal import Decimal
from unittest.mock import MagicMock

from conftest import NOW
from repairdesk.domain import Customer, Invoice, InvoiceStatus, MaintenanceSchedule, Product
from repairdesk.repositories.state_repo import StateRepository
from repairdesk.serialization import state_from_data, state_to_data
from repairdesk.services.billing import line_item


def _rich_state(state):
    return dataclasses.replace(
        state,
        customers=(Customer(id="cust1", name="Maria", phone="1", latitude=18.5),),
        products=(Product("prod1", "Termostato", purchase_price=Decimal("200"), sell_price_1=Decimal("500"), stock=3),),
        maintenance_schedules=(
            MaintenanceSchedule("ms1", "cust1", "Limpieza", 6, date(2024, 1, 31), date(2024, 7, 31)),
        ),
        invoices=(
            Invoice(
                id="inv1",
                invoice_number="F-000001",
                customer_id="cust1",
                date=NOW,
                items=(line_item("Reparación", 1, "1000"),),
                subtotal=Decimal("1000.00"),
                discount=Decimal("200"),
                taxes=Decimal("144.00"),
                total=Decimal("944.00"),
                is_taxable=True,
                status=InvoiceStatus.ISSUED,
            ),
        ),
    )


def test_state_survives_json_conversion(state):
    rich = _rich_state(state)
    assert state_from_data(state_to_data(rich)) == rich


def test_save_upserts_jsonb_payload(state):
    conn = MagicMock()
    StateRepository().save(conn, state)
    sql, params = conn.execute.call_args.args
    assert "ON CONFLICT (id) DO UPDATE" in sql
    assert params[0] == 1
    assert params[1].obj == state_to_data(state)


def test_load_returns_none_when_empty():
    conn = MagicMock()
    conn.execute.return_value.fetchone.return_value = None
    assert StateRepository().load(conn) is None


def test_load_decodes_payload(state):
    rich = _rich_state(state)
    conn = MagicMock()
    conn.execute.return_value.fetchone.return_value = (state_to_data(rich),)
    assert StateRepository().load(conn) == rich


def test_saved_at_reads_timestamp():
    conn = MagicMock()
    conn.execute.return_value.fetchone.return_value = (NOW,)
    assert StateRepository().saved_at(conn) == NOW
