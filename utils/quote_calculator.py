"""
Quote Calculator - tarifa x noches x impuesto <-> total plano

SINGLE SOURCE OF TRUTH para los campos monetarios derivados del ledger.
El dinero se redondea a 2 decimales en cada paso, no sólo al final.
"""

import math
import re
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Optional

from config import DEFAULT_TAX_RATE
from utils.logging_utils import log_event

CENT = Decimal("0.01")
ONE = Decimal("1")
HUNDRED = Decimal("100")

_NON_NUMERIC = re.compile(r"[^0-9.\-]")

# Campos que exige el cálculo sobre una fila
QUOTE_FIELDS = ("room", "amount", "nights", "subtotal", "total", "taxRate")


def round2(value) -> Decimal:
    return Decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def parse_number(value) -> Optional[Decimal]:
    """Convierte a Decimal; None si el valor está vacío o no es numérico"""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, Decimal):
        return value if value.is_finite() else None
    if isinstance(value, (int, float)):
        if isinstance(value, float) and not math.isfinite(value):
            return None
        return Decimal(str(value))

    cleaned = _NON_NUMERIC.sub("", str(value).strip())
    if not cleaned:
        return None
    try:
        number = Decimal(cleaned)
    except InvalidOperation:
        return None
    return number if number.is_finite() else None


def to_number(value) -> Decimal:
    """Valores no numéricos se coercionan a 0 en lugar de fallar"""
    number = parse_number(value)
    return number if number is not None else Decimal("0")


def is_numeric_input(value) -> bool:
    return parse_number(value) is not None


def normalize_nights(value) -> int:
    """Piso entero, mínimo 1 noche"""
    if value is None or value == "":
        return 1
    return max(1, math.floor(to_number(value)))


def normalize_tax_rate(value, default: float = None) -> Decimal:
    """
    Normaliza la tasa de impuesto a fracción.

    - número > 1 se interpreta como porcentaje (13 -> 0.13)
    - texto con '%' se interpreta como porcentaje ("13%" -> 0.13)
    - vacío, inválido o negativo -> tasa por defecto
    """
    fallback = Decimal(str(DEFAULT_TAX_RATE if default is None else default))
    if value is None or value == "":
        return fallback

    number = parse_number(value)
    if number is None or number < 0:
        return fallback

    if isinstance(value, str) and "%" in value:
        return number / HUNDRED
    return number / HUNDRED if number > ONE else number


@dataclass
class Quote:
    rate: Decimal
    nights: int
    tax_rate: Decimal
    subtotal: Decimal
    total: Decimal

    @property
    def tax(self) -> Decimal:
        return self.total - self.subtotal


def forward(rate, nights, tax_rate) -> Quote:
    """subtotal = round2(rate*nights); total = round2(subtotal*(1+tax))"""
    rate_d = to_number(rate)
    nights_i = normalize_nights(nights)
    tax_d = normalize_tax_rate(tax_rate)

    subtotal = round2(rate_d * nights_i)
    total = round2(subtotal * (ONE + tax_d))
    return Quote(rate=rate_d, nights=nights_i, tax_rate=tax_d, subtotal=subtotal, total=total)


def backward(flat_total, nights, tax_rate) -> Quote:
    """
    Cálculo inverso desde un total con impuesto (flat-total entry).

    El total se conserva tal cual se ingresó; no se recalcula desde el
    subtotal derivado para evitar oscilaciones.
    """
    total_d = to_number(flat_total)
    nights_i = normalize_nights(nights)
    tax_d = normalize_tax_rate(tax_rate)

    subtotal = round2(total_d / (ONE + tax_d))
    rate = round2(subtotal / nights_i)
    return Quote(rate=rate, nights=nights_i, tax_rate=tax_d, subtotal=subtotal, total=total_d)


def invoice_breakdown(rate, nights, tax_rate) -> dict:
    """Montos para el documento de invoice: impuesto = round2(subtotal*tasa)"""
    rate_d = to_number(rate)
    nights_i = normalize_nights(nights)
    tax_d = normalize_tax_rate(tax_rate)

    subtotal = round2(rate_d * nights_i)
    tax = round2(subtotal * tax_d)
    return {
        "rate": round2(rate_d),
        "nights": nights_i,
        "tax_rate": tax_d,
        "subtotal": subtotal,
        "tax": tax,
        "total": round2(subtotal + tax),
    }


# =====================================================================
# APLICACIÓN SOBRE FILAS DEL LEDGER
# =====================================================================

def update_quote_for_row(sheet, schema, row: int) -> Optional[Quote]:
    """Recalcula subtotal/total desde tarifa, noches e impuesto. No-op si faltan columnas."""
    if not schema.has(*QUOTE_FIELDS):
        return None
    if not sheet.get_value(row, schema.col("room")):
        return None

    quote = forward(
        sheet.get_value(row, schema.col("amount")),
        sheet.get_value(row, schema.col("nights")),
        sheet.get_value(row, schema.col("taxRate")),
    )
    sheet.set_value(row, schema.col("nights"), quote.nights)
    sheet.set_value(row, schema.col("subtotal"), quote.subtotal)
    sheet.set_value(row, schema.col("total"), quote.total)
    return quote


def update_quote_from_total(sheet, schema, row: int, flat_total, usuario: str = "system") -> Optional[Quote]:
    """Total ingresado directamente: calcula hacia atrás tarifa y subtotal"""
    if not schema.has(*QUOTE_FIELDS):
        return None
    room = sheet.get_value(row, schema.col("room"))
    if not room:
        return None

    quote = backward(
        flat_total,
        sheet.get_value(row, schema.col("nights")),
        sheet.get_value(row, schema.col("taxRate")),
    )
    sheet.set_value(row, schema.col("nights"), quote.nights)
    sheet.set_value(row, schema.col("amount"), quote.rate)
    sheet.set_value(row, schema.col("subtotal"), quote.subtotal)
    sheet.set_value(row, schema.col("total"), quote.total)

    log_event(
        "quote",
        usuario,
        "Total plano calculado",
        f"room={room}, row={row}, total={quote.total}, subtotal={quote.subtotal}, "
        f"rate={quote.rate}, nights={quote.nights}, tax={(quote.tax_rate * HUNDRED):.2f}%",
    )
    return quote
