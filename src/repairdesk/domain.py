from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Optional


class StaffRole(str, Enum):
    ADMIN = "administrador"
    COORDINATOR = "coordinador"
    TECHNICIAN = "tecnico"
    SECRETARY = "secretaria"


class OrderStatus(str, Enum):
    UNCONFIRMED = "Por Confirmar"
    PENDING = "Pendiente"
    IN_PROGRESS = "En Proceso"
    COMPLETED = "Completado"
    WARRANTY = "Garantía"
    CANCELLED = "Cancelado"
    NOT_SCHEDULED = "No Agendado"

    @property
    def is_terminal(self) -> bool:
        return self in (OrderStatus.CANCELLED, OrderStatus.NOT_SCHEDULED)


class LogAction(str, Enum):
    CREATED = "Creado"
    CONFIRMED = "Confirmado"
    EDITED = "Editado"
    RESCHEDULED = "Reagendado"
    CANCELLED = "Cancelado"
    STATUS_CHANGED = "Estado Cambiado"
    ARCHIVED = "Archivado"


class ProductType(str, Enum):
    INVENTORY = "Inventario"
    MANUAL = "Manual"


class InvoiceStatus(str, Enum):
    DRAFT = "Borrador"
    ISSUED = "Emitida"
    PARTIALLY_PAID = "Pago Parcial"
    PAID = "Pagada"
    VOID = "Anulada"


class PaymentMethod(str, Enum):
    CASH = "Efectivo"
    TRANSFER = "Transferencia"
    CREDIT_CARD = "Tarjeta de Crédito"
    DEBIT_CARD = "Tarjeta de Débito"


class QuoteStatus(str, Enum):
    DRAFT = "Borrador"
    SENT = "Enviada"
    ACCEPTED = "Aceptada"
    REJECTED = "Rechazada"


class EquipmentStatus(str, Enum):
    RECEIVED = "Recibido"
    DIAGNOSING = "En Diagnóstico"
    AWAITING_PART = "Esperando Repuesto"
    REPAIRING = "En Reparación"
    READY = "Listo para Retirar"
    DELIVERED = "Entregado"


# Actor ids that are not staff members.
PUBLIC_FORM_ACTOR = "public_form"
SYSTEM_ACTOR = "system"


@dataclass(frozen=True)
class ActionLog:
    action: LogAction
    timestamp: datetime
    user_id: str
    details: Optional[str] = None


@dataclass(frozen=True)
class TimeSlot:
    start_time: str  # "HH:MM"
    end_time: str


@dataclass(frozen=True)
class DailyAvailability:
    day_of_week: int  # 0 = Sunday
    slots: tuple[TimeSlot, ...] = ()


@dataclass(frozen=True)
class Staff:
    id: str
    name: str
    email: str
    calendar_id: str
    role: StaffRole
    personal_phone: Optional[str] = None
    fleet_phone: Optional[str] = None
    id_number: Optional[str] = None
    access_key: Optional[str] = None


@dataclass(frozen=True)
class Calendar:
    id: str
    name: str
    user_id: str
    color: str
    availability: tuple[DailyAvailability, ...] = ()
    active: bool = True


@dataclass(frozen=True)
class Customer:
    id: str
    name: str
    phone: str
    email: str = ""
    address: str = ""
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    service_history: tuple[str, ...] = ()
    created_by_id: Optional[str] = None


@dataclass(frozen=True)
class ServiceOrder:
    id: str
    service_order_number: str
    title: str
    customer_id: str
    customer_name: str
    customer_phone: str
    customer_address: str
    appliance_type: str
    issue_description: str
    status: OrderStatus
    created_at: datetime
    start: Optional[datetime] = None
    end: Optional[datetime] = None
    calendar_id: Optional[str] = None
    is_google_synced: bool = False
    google_event_id: Optional[str] = None
    customer_email: Optional[str] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    reminders: tuple[int, ...] = ()
    service_notes: Optional[str] = None
    is_checkup_only: bool = False
    created_by_id: Optional[str] = None
    confirmed_by_id: Optional[str] = None
    attended_by_id: Optional[str] = None
    archive_reason: Optional[str] = None
    cancellation_reason: Optional[str] = None
    cancelled_by_id: Optional[str] = None
    rescheduled_count: int = 0
    history: tuple[ActionLog, ...] = ()


@dataclass(frozen=True)
class MaintenanceSchedule:
    id: str
    customer_id: str
    service_description: str
    frequency_months: int  # 3, 6 or 12
    start_date: date
    next_due_date: date


@dataclass(frozen=True)
class Product:
    id: str
    name: str
    description: str = ""
    purchase_price: Decimal = Decimal("0")
    sell_price_1: Decimal = Decimal("0")  # list price
    sell_price_2: Decimal = Decimal("0")  # discounted price
    stock: int = 0


@dataclass(frozen=True)
class Commission:
    technician_id: str
    amount: Decimal


@dataclass(frozen=True)
class InvoiceLineItem:
    id: str
    description: str
    quantity: Decimal
    sell_price: Decimal
    purchase_price: Decimal = Decimal("0")
    type: ProductType = ProductType.MANUAL
    product_id: Optional[str] = None
    commission: Optional[Commission] = None


@dataclass(frozen=True)
class PaymentDetails:
    method: PaymentMethod
    amount: Decimal
    payment_date: datetime
    bank_account_id: Optional[str] = None
    cash_received: Optional[Decimal] = None
    change_given: Optional[Decimal] = None


@dataclass(frozen=True)
class Invoice:
    id: str
    invoice_number: str
    customer_id: str
    date: datetime
    items: tuple[InvoiceLineItem, ...]
    subtotal: Decimal
    discount: Decimal
    taxes: Decimal
    total: Decimal
    is_taxable: bool
    status: InvoiceStatus
    service_order_id: Optional[str] = None
    service_order_description: Optional[str] = None
    payments: tuple[PaymentDetails, ...] = ()
    paid_amount: Decimal = Decimal("0")


@dataclass(frozen=True)
class Quote:
    id: str
    quote_number: str
    customer_id: str
    date: datetime
    items: tuple[InvoiceLineItem, ...]
    subtotal: Decimal
    discount: Decimal
    taxes: Decimal
    total: Decimal
    is_taxable: bool
    status: QuoteStatus
    created_by_id: Optional[str] = None


@dataclass(frozen=True)
class WorkshopEquipment:
    id: str
    entry_date: datetime
    customer_id: str
    equipment_type: str
    brand: str
    model: str
    serial_number: str
    reported_fault: str
    status: EquipmentStatus
    technician_id: Optional[str] = None
    history: tuple[ActionLog, ...] = ()


@dataclass(frozen=True)
class BankAccount:
    id: str
    bank_name: str
    account_holder: str
    account_number: str


@dataclass(frozen=True)
class CompanyInfo:
    name: str = ""
    address: str = ""
    phone: str = ""
    whatsapp: str = ""
    email: str = ""
    logo_url: Optional[str] = None


@dataclass(frozen=True)
class AppState:
    staff: tuple[Staff, ...] = ()
    customers: tuple[Customer, ...] = ()
    calendars: tuple[Calendar, ...] = ()
    service_orders: tuple[ServiceOrder, ...] = ()
    maintenance_schedules: tuple[MaintenanceSchedule, ...] = ()
    invoices: tuple[Invoice, ...] = ()
    quotes: tuple[Quote, ...] = ()
    workshop_equipment: tuple[WorkshopEquipment, ...] = ()
    bank_accounts: tuple[BankAccount, ...] = ()
    products: tuple[Product, ...] = ()
    public_form_availability: tuple[DailyAvailability, ...] = ()
    company_info: CompanyInfo = field(default_factory=CompanyInfo)
    current_user_id: Optional[str] = None
    last_service_order_number: int = 0
    last_quote_number: int = 0
