"""
BookingRecord: vista tipada de una fila del ledger a través del schema resuelto.
Incluye los estados derivados de reserva y de habitación.
"""

from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import Any, Optional

from config import HK_DONE_TEXT, INVOICE_STATUS_VOID
from utils.quote_calculator import normalize_nights, normalize_tax_rate, to_number

TRUTHY_VALUES = ("yes", "y", "true", "1")


def to_yes(value: Any) -> bool:
    """Checkbox / "Yes" de la planilla"""
    if isinstance(value, bool):
        return value
    return str(value if value is not None else "").strip().lower() in TRUTHY_VALUES


def normalize_room(value: Any) -> str:
    """
    Identidad de habitación: sin espacios y sin ceros a la izquierda.
    "5", "05" y " 5 " son la misma habitación (colisión documentada).
    """
    if value is None:
        return ""
    text = str(value).strip()
    if isinstance(value, float) and value.is_integer():
        text = str(int(value))
    # "0" / "00" sigue siendo una habitación
    return text.lstrip("0") or ("0" if text else "")


class BookingStage(str, Enum):
    """Etapas del ciclo de vida de una fila"""
    NEW = "new"
    CHECKED_IN = "checked_in"
    CHECKED_OUT = "checked_out"
    HOUSEKEEPING_READY = "housekeeping_ready"
    HOUSEKEEPING_DONE = "housekeeping_done"


class RoomState(str, Enum):
    """Estado derivado de una habitación"""
    AVAILABLE = "Available"
    OCCUPIED = "Occupied"
    READY_FOR_CLEANING = "Ready for Cleaning"
    CLEANED = "Cleaned"


class BookingRecord:
    """Acceso tipado a una fila; campos ausentes del schema devuelven vacío"""

    def __init__(self, sheet, schema, row: int):
        self.sheet = sheet
        self.schema = schema
        self.row = row

    def __repr__(self) -> str:
        return f"<BookingRecord row={self.row} room={self.room!r}>"

    # ------------------------------------------------------------------
    # Acceso genérico
    # ------------------------------------------------------------------
    def get(self, key: str, default: Any = "") -> Any:
        column = self.schema.col(key)
        if column is None:
            return default
        return self.sheet.get_value(self.row, column)

    def set(self, key: str, value: Any) -> bool:
        """Escribe el campo si existe la columna. Devuelve False si no existe."""
        column = self.schema.col(key)
        if column is None:
            return False
        self.sheet.set_value(self.row, column, value)
        return True

    def stamp_once(self, key: str, value: Any) -> bool:
        """Timestamps: se escriben una sola vez, nunca se sobreescriben"""
        if self.schema.col(key) is None or self.get(key):
            return False
        return self.set(key, value)

    # ------------------------------------------------------------------
    # Campos
    # ------------------------------------------------------------------
    @property
    def room(self) -> str:
        value = self.get("room")
        return str(value).strip() if value not in (None, "") else ""

    @property
    def guest(self) -> str:
        return str(self.get("guest") or "").strip()

    @property
    def rate(self) -> Decimal:
        return to_number(self.get("amount"))

    @property
    def nights(self) -> int:
        return normalize_nights(self.get("nights"))

    @property
    def tax_rate(self) -> Decimal:
        return normalize_tax_rate(self.get("taxRate"))

    @property
    def subtotal(self) -> Decimal:
        return to_number(self.get("subtotal"))

    @property
    def total(self) -> Decimal:
        return to_number(self.get("total"))

    @property
    def payment_type(self) -> str:
        return str(self.get("paymentType") or "").strip()

    @property
    def check_in_time(self) -> Any:
        return self.get("checkInTime")

    @property
    def check_out_time(self) -> Any:
        return self.get("checkOutTime")

    @property
    def cleaned_time(self) -> Any:
        return self.get("cleanedTime")

    @property
    def hk_status(self) -> str:
        return str(self.get("hkStatus") or "").strip()

    @property
    def invoice_no(self) -> str:
        return str(self.get("invoiceNo") or "").strip()

    @property
    def invoice_status(self) -> str:
        return str(self.get("invoiceStatus") or "").strip().upper()

    @property
    def invoice_url(self) -> str:
        return str(self.get("invoiceUrl") or "").strip()

    @property
    def guest_email(self) -> str:
        return str(self.get("guestEmail") or "").strip()

    # ------------------------------------------------------------------
    # Flags (checkbox o timestamp compañero)
    # ------------------------------------------------------------------
    @property
    def is_checked_in(self) -> bool:
        if self.schema.col("checkIn") is None:
            return False
        return to_yes(self.get("checkIn")) or bool(self.check_in_time)

    @property
    def is_checked_out(self) -> bool:
        if self.schema.col("checkOut") is None:
            return False
        return to_yes(self.get("checkOut")) or bool(self.check_out_time)

    @property
    def is_hk_done(self) -> bool:
        return to_yes(self.get("hkDone")) or bool(self.cleaned_time)

    @property
    def is_active(self) -> bool:
        """checked-in-active: con check-in y sin check-out"""
        return self.is_checked_in and not self.is_checked_out

    @property
    def is_void(self) -> bool:
        return self.invoice_status == INVOICE_STATUS_VOID

    @property
    def is_cleaned_ready(self) -> bool:
        return self.hk_status == HK_DONE_TEXT

    @property
    def is_historical(self) -> bool:
        return self.sheet.is_historical(self.row)

    @property
    def stage(self) -> BookingStage:
        if self.is_checked_out:
            if self.is_hk_done:
                return BookingStage.HOUSEKEEPING_DONE
            if self.hk_status:
                return BookingStage.HOUSEKEEPING_READY
            return BookingStage.CHECKED_OUT
        if self.is_checked_in:
            return BookingStage.CHECKED_IN
        return BookingStage.NEW


@dataclass
class RoomSnapshot:
    """Estado derivado de una habitación en un momento dado"""
    room: str
    status: RoomState
    guest: str = ""
    check_in_time: Any = ""
    check_out_time: Any = ""
    source_row: Optional[int] = None
    cleaned_ready: bool = False
    override: Optional[str] = None

    @property
    def display_status(self) -> str:
        """El override de mantenimiento tiene precedencia sólo para mostrar"""
        return self.override or self.status.value
