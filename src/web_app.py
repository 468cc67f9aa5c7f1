from __future__ import annotations

from datetime import date, datetime, timedelta

from flask import Flask, Response, jsonify, request

from repairdesk.bootstrap import Services, build_services, setup_logging
from repairdesk.config import ConfigError, load_config
from repairdesk.db import DbError
from repairdesk.domain import OrderStatus, PaymentMethod
from repairdesk.importers import ImportError, export_customers_json, parse_customers_json
from repairdesk.reports import secretary_performance, technician_performance
from repairdesk.serialization import to_data
from repairdesk.services.availability import to_local_time
from repairdesk.services.billing import InvoiceInput, QuoteInput, line_item
from repairdesk.services.catalog_service import ProductInput, add_product
from repairdesk.services.customer_service import load_customers
from repairdesk.services.errors import NotFoundError, ValidationError
from repairdesk.services.order_service import CreateOrderInput, OrderResult

app = Flask(__name__)

services: Services = None

_DATETIME_FIELDS = ("start", "end")


def configure(new_services: Services) -> Flask:
    global services
    services = new_services
    return app


@app.errorhandler(NotFoundError)
def _not_found(e):
    return jsonify({"error": str(e)}), 404


@app.errorhandler(ValidationError)
def _invalid(e):
    return jsonify({"error": str(e)}), 400


@app.errorhandler(ImportError)
def _bad_import(e):
    return jsonify({"error": str(e)}), 400


@app.errorhandler(ValueError)
def _bad_value(e):
    return jsonify({"error": str(e)}), 400


def _body() -> dict:
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        raise ValidationError("Request body must be a JSON object.")
    return data


def _parse_dt(value) -> datetime | None:
    if not value:
        return None
    if not isinstance(value, str):
        raise ValidationError(f"Expected an ISO 8601 date-time, got {value!r}.")
    return to_local_time(datetime.fromisoformat(value), services.time_zone)


def _coordinate(data: dict, key: str) -> float | None:
    value = data.get(key)
    if value is None or value == "":
        return None
    if isinstance(value, bool):
        raise ValidationError(f"{key} must be a number.")
    try:
        return float(value)
    except (TypeError, ValueError) as e:
        raise ValidationError(f"{key} must be a number.") from e


def _parse_changes(data: dict) -> dict:
    changes = dict(data)
    for key in _DATETIME_FIELDS:
        if key in changes:
            changes[key] = _parse_dt(changes[key])
    for key in ("latitude", "longitude"):
        if key in changes:
            changes[key] = _coordinate(changes, key)
    return changes


def _order_response(result: OrderResult, status: int = 200):
    return jsonify({"order": to_data(result.order), "warnings": result.warnings}), status


def _order_input(data: dict) -> CreateOrderInput:
    return CreateOrderInput(
        customer_name=str(data.get("customer_name", "")),
        customer_phone=str(data.get("customer_phone", "")),
        customer_address=str(data.get("customer_address", "")),
        customer_email=str(data.get("customer_email") or ""),
        appliance_type=str(data.get("appliance_type", "")),
        issue_description=str(data.get("issue_description", "")),
        latitude=_coordinate(data, "latitude"),
        longitude=_coordinate(data, "longitude"),
        start=_parse_dt(data.get("start")),
        end=_parse_dt(data.get("end")),
        calendar_id=data.get("calendar_id"),
        reminders=tuple(data.get("reminders") or ()),
        is_checkup_only=bool(data.get("is_checkup_only", False)),
        service_notes=data.get("service_notes"),
    )


def _item(i: dict):
    if i.get("product_id"):
        return services.billing.inventory_item(
            str(i["product_id"]),
            i.get("quantity", 1),
            price_level=int(i.get("price_level", 1)),
            sell_price=i.get("sell_price"),
        )
    return line_item(
        str(i.get("description", "")),
        i.get("quantity", 1),
        i.get("sell_price", 0),
        purchase_price=i.get("purchase_price", 0),
    )


def _items(data: dict) -> list:
    return [_item(i) for i in data.get("items") or []]


def _date_range() -> tuple[date, date]:
    d2 = date.fromisoformat(request.args["to"]) if request.args.get("to") else date.today()
    d1 = date.fromisoformat(request.args["from"]) if request.args.get("from") else d2 - timedelta(days=30)
    return d1, d2


@app.route("/calendars/<calendar_id>/slots")
def calendar_slots(calendar_id):
    day = date.fromisoformat(request.args["date"]) if request.args.get("date") else date.today()
    slots = services.orders.open_slots(calendar_id, day, request.args.get("exclude"))
    return jsonify([to_data(s) for s in slots])


@app.route("/orders")
def orders_list():
    status = request.args.get("status")
    rows = [o for o in services.store.state.service_orders if status is None or o.status.value == status]
    return jsonify([to_data(o) for o in rows])


@app.route("/orders", methods=["POST"])
def orders_new():
    data = _body()
    result = services.orders.create_order(_order_input(data), actor_id=data.get("actor_id"))
    return _order_response(result, 201)


@app.route("/orders/public", methods=["POST"])
def orders_public():
    result = services.orders.create_public_order(_order_input(_body()))
    return _order_response(result, 201)


@app.route("/orders/<order_id>", methods=["PATCH"])
def orders_update(order_id):
    data = _body()
    actor_id = data.pop("actor_id", None)
    return _order_response(services.orders.update_order(order_id, _parse_changes(data), actor_id=actor_id))


@app.route("/orders/<order_id>/confirm", methods=["POST"])
def orders_confirm(order_id):
    data = _body()
    actor_id = data.pop("actor_id", None)
    return _order_response(services.orders.confirm_order(order_id, _parse_changes(data), actor_id=actor_id))


@app.route("/orders/<order_id>/cancel", methods=["POST"])
def orders_cancel(order_id):
    data = _body()
    return _order_response(
        services.orders.cancel_order(order_id, str(data.get("reason", "")), actor_id=data.get("actor_id"))
    )


@app.route("/orders/<order_id>/archive", methods=["POST"])
def orders_archive(order_id):
    data = _body()
    return _order_response(
        services.orders.archive_order(order_id, str(data.get("attended_by_id", "")), str(data.get("reason", "")))
    )


@app.route("/orders/<order_id>/status", methods=["POST"])
def orders_status(order_id):
    data = _body()
    status = OrderStatus(data.get("status"))
    return _order_response(services.orders.set_status(order_id, status, actor_id=data.get("actor_id")))


@app.route("/orders/<order_id>/reminders", methods=["POST"])
def orders_reminders(order_id):
    data = _body()
    return _order_response(
        services.orders.set_reminders(order_id, data.get("reminders") or [], actor_id=data.get("actor_id"))
    )


@app.route("/customers/export")
def customers_export():
    return Response(export_customers_json(services.store.state.customers), mimetype="application/json")


@app.route("/customers/import", methods=["POST"])
def customers_import():
    customers = parse_customers_json(request.get_data(as_text=True))
    services.store.dispatch(load_customers, customers)
    return jsonify({"imported": len(customers)})


@app.route("/products")
def products_list():
    return jsonify([to_data(p) for p in services.store.state.products])


@app.route("/products", methods=["POST"])
def products_new():
    data = _body()
    product = services.store.dispatch(
        add_product,
        ProductInput(
            name=str(data.get("name", "")),
            description=str(data.get("description") or ""),
            purchase_price=data.get("purchase_price", 0),
            sell_price_1=data.get("sell_price_1", 0),
            sell_price_2=data.get("sell_price_2", 0),
            stock=int(data.get("stock", 0)),
        ),
    )
    return jsonify(to_data(product)), 201


@app.route("/invoices", methods=["POST"])
def invoices_new():
    data = _body()
    invoice = services.billing.add_invoice(
        InvoiceInput(
            customer_id=str(data.get("customer_id", "")),
            items=_items(data),
            discount=data.get("discount", 0),
            is_taxable=bool(data.get("is_taxable", True)),
            service_order_id=data.get("service_order_id"),
            service_order_description=data.get("service_order_description"),
        )
    )
    return jsonify(to_data(invoice)), 201


@app.route("/invoices/<invoice_id>/payments", methods=["POST"])
def invoices_pay(invoice_id):
    data = _body()
    invoice = services.billing.record_payment(
        invoice_id,
        PaymentMethod(data.get("method", PaymentMethod.CASH.value)),
        data.get("amount", 0),
        cash_received=data.get("cash_received"),
        bank_account_id=data.get("bank_account_id"),
    )
    return jsonify(to_data(invoice))


@app.route("/quotes", methods=["POST"])
def quotes_new():
    data = _body()
    quote = services.billing.add_quote(
        QuoteInput(
            customer_id=str(data.get("customer_id", "")),
            items=_items(data),
            discount=data.get("discount", 0),
            is_taxable=bool(data.get("is_taxable", True)),
        ),
        actor_id=data.get("actor_id"),
    )
    return jsonify(to_data(quote)), 201


@app.route("/staff/<staff_id>", methods=["DELETE"])
def staff_delete(staff_id):
    warnings = services.staff.delete_staff(staff_id, actor_id=request.args.get("actor_id"))
    return jsonify({"deleted": staff_id, "warnings": warnings})


@app.route("/maintenance/sweep", methods=["POST"])
def maintenance_sweep():
    return jsonify({"created": services.scheduler.run_once()})


@app.route("/reports/secretaries")
def reports_secretaries():
    d1, d2 = _date_range()
    return jsonify(secretary_performance(services.store.state, d1, d2, request.args.get("staff_id")))


@app.route("/reports/technicians")
def reports_technicians():
    d1, d2 = _date_range()
    return jsonify(technician_performance(services.store.state, d1, d2, request.args.get("staff_id")))


if __name__ == "__main__":
    try:
        cfg = load_config("config.toml")
        setup_logging(cfg.log_level)
        configure(build_services(cfg))
        services.scheduler.start()
        app.run(debug=False, host="127.0.0.1", port=5000)
    except ConfigError as e:
        print(f"[CONFIG ERROR] {e}")
        raise SystemExit(2)
    except DbError as e:
        print(f"[DB ERROR] {e}")
        raise SystemExit(3)
