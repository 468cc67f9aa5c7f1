from __future__ import annotations

from datetime import date, datetime, timedelta

from .bootstrap import Services
from .domain import OrderStatus, PaymentMethod
from .importers import ImportError, read_customers_json, write_customers_json
from .reports import secretary_performance, technician_performance
from .services.availability import to_local_time
from .services.customer_service import load_customers
from .services.errors import ValidationError
from .services.order_service import CreateOrderInput


def _prompt(msg: str) -> str:
    return input(msg).strip()


def _prompt_datetime(msg: str, time_zone: str) -> datetime | None:
    raw = _prompt(msg)
    return to_local_time(datetime.fromisoformat(raw), time_zone) if raw else None


def _print_warnings(warnings: list[str]) -> None:
    for w in warnings:
        print(f"[SYNC WARNING] {w}")


def run_cli(services: Services) -> None:
    store = services.store
    orders = services.orders
    billing = services.billing
    tz = services.time_zone

    while True:
        print("\n=== RepairDesk CLI ===")
        print("1) List customers")
        print("2) List service orders")
        print("3) Create service order")
        print("4) Confirm order")
        print("5) Cancel order")
        print("6) Open slots for a calendar")
        print("7) Invoice an order + record payment")
        print("8) Import customers JSON")
        print("9) Export customers JSON")
        print("10) Performance reports (last 30 days)")
        print("11) Run maintenance sweep")
        print("12) Save snapshot to database")
        print("0) Exit")

        choice = _prompt("> ")
        try:
            if choice == "0":
                return

            elif choice == "1":
                for c in store.state.customers[:50]:
                    print(f"{c.id} {c.name} phone={c.phone} orders={len(c.service_history)}")

            elif choice == "2":
                for o in store.state.service_orders[-30:]:
                    when = o.start.isoformat(timespec="minutes") if o.start else "-"
                    print(f"{o.service_order_number} [{o.status.value}] {o.title} start={when} calendar={o.calendar_id}")

            elif choice == "3":
                data = CreateOrderInput(
                    customer_name=_prompt("customer name: "),
                    customer_phone=_prompt("customer phone: "),
                    customer_address=_prompt("address: "),
                    customer_email=_prompt("email (optional): "),
                    appliance_type=_prompt("appliance / service: "),
                    issue_description=_prompt("issue: "),
                    start=_prompt_datetime("start YYYY-MM-DDTHH:MM (optional): ", tz),
                    end=_prompt_datetime("end YYYY-MM-DDTHH:MM (optional): ", tz),
                    calendar_id=_prompt("calendar_id (optional): ") or None,
                )
                result = orders.create_order(data)
                print(f"Created {result.order.service_order_number} id={result.order.id}")
                _print_warnings(result.warnings)

            elif choice == "4":
                order_id = _prompt("order id: ")
                changes = {
                    "start": _prompt_datetime("start YYYY-MM-DDTHH:MM: ", tz),
                    "end": _prompt_datetime("end YYYY-MM-DDTHH:MM: ", tz),
                    "calendar_id": _prompt("calendar_id: "),
                }
                result = orders.confirm_order(order_id, changes)
                print(f"Confirmed {result.order.service_order_number} -> {result.order.status.value}")
                _print_warnings(result.warnings)

            elif choice == "5":
                order_id = _prompt("order id: ")
                reason = _prompt("reason: ")
                result = orders.cancel_order(order_id, reason)
                print(f"{result.order.service_order_number} is now {OrderStatus.CANCELLED.value}")
                _print_warnings(result.warnings)

            elif choice == "6":
                calendar_id = _prompt("calendar_id: ")
                raw = _prompt("date YYYY-MM-DD (default today): ")
                day = date.fromisoformat(raw) if raw else date.today()
                slots = orders.open_slots(calendar_id, day)
                if not slots:
                    print("No availability that day.")
                for s in slots:
                    print(f"  {s.start_time}-{s.end_time} {'occupied' if s.occupied else 'free'}")

            elif choice == "7":
                order_id = _prompt("order id: ")
                price = _prompt("price: ")
                invoice = billing.invoice_from_order(order_id, price)
                print(f"Invoice {invoice.invoice_number} total={invoice.total}")
                amount = _prompt("payment amount (blank to skip): ")
                if amount:
                    method = PaymentMethod(_prompt("method (Efectivo/Transferencia): ") or PaymentMethod.CASH.value)
                    received = _prompt("cash received (optional): ") or None
                    invoice = billing.record_payment(invoice.id, method, amount, cash_received=received)
                    print(f"Invoice {invoice.invoice_number} status={invoice.status.value} paid={invoice.paid_amount}")

            elif choice == "8":
                path = _prompt("path to customers.json: ")
                customers = read_customers_json(path)
                store.dispatch(load_customers, customers)
                print(f"Imported customers: {len(customers)}")

            elif choice == "9":
                path = _prompt("output path: ")
                n = write_customers_json(path, store.state.customers)
                print(f"Exported customers: {n}")

            elif choice == "10":
                d2 = date.today()
                d1 = d2 - timedelta(days=30)
                print("Secretaries:")
                for r in secretary_performance(store.state, d1, d2):
                    print(
                        f'  {r["name"]} confirmed={r["confirmed"]} cancelled={r["cancelled"]} '
                        f'rescheduled={r["rescheduled"]} rate={r["confirmation_rate"]}%'
                    )
                print("Technicians:")
                for r in technician_performance(store.state, d1, d2):
                    print(
                        f'  {r["name"]} assigned={r["assigned"]} completed={r["completed"]} '
                        f'warranty={r["warranty"]} rate={r["completion_rate"]}%'
                    )

            elif choice == "11":
                created = services.scheduler.run_once()
                print(f"Maintenance orders created: {len(created)}")

            elif choice == "12":
                saved_at = services.save_snapshot()
                if saved_at is not None:
                    print(f"Snapshot saved at {saved_at}.")
                else:
                    print("No [db] section configured.")

            else:
                print("Unknown choice.")

        except ValidationError as e:
            print(f"[INPUT ERROR] {e}")
        except ImportError as e:
            print(f"[IMPORT ERROR] {e}")
        except ValueError as e:
            print(f"[VALUE ERROR] {e}")
        except Exception as e:
            print(f"[ERROR] {type(e).__name__}: {e}")
