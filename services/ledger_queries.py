"""
Consultas de sólo lectura sobre el ledger
"""

from typing import List

from models.booking import BookingRecord
from utils.quote_calculator import round2
from utils.schema_resolver import resolve_schema
from utils.timezone import format_hotel_time


def guest_history(sheet, search_term: str) -> List[dict]:
    """
    Historial de un huésped: coincidencia parcial, sin distinguir mayúsculas,
    sobre el nombre completo. Devuelve las filas en orden del ledger.
    """
    term = (search_term or "").strip().lower()
    if not term:
        return []

    schema = resolve_schema(sheet.header_row())
    schema.require("guest")

    history = []
    for row in sheet.data_rows():
        record = BookingRecord(sheet, schema, row)
        if term not in record.guest.lower():
            continue
        history.append({
            "row": row,
            "date": format_hotel_time(record.get("date"), "%m/%d/%Y"),
            "room": record.room,
            "guest": record.guest,
            "nights": record.nights,
            "total": round2(record.total),
            "checked_in": record.is_checked_in,
            "checked_out": record.is_checked_out,
            "invoice_no": record.invoice_no,
        })
    return history
