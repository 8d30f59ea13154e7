"""
Overrides de mantenimiento (hoja Rooms_Master).

Sólo afectan lo que se muestra en el tablero de habitaciones, nunca la
lógica de reservas.
"""

from enum import Enum
from typing import Dict, Optional, Tuple

from models.booking import normalize_room
from utils.logging_utils import log_event


class RoomOverrideStatus(str, Enum):
    MAINTENANCE = "Maintenance"
    CONSTRUCTION = "Construction"
    OUT_OF_ORDER = "Out of Order"
    REPAIR = "Repair"
    AVAILABLE = "Available"


# Orden de evaluación por palabra clave
_KEYWORDS = (
    ("maintenance", RoomOverrideStatus.MAINTENANCE),
    ("construction", RoomOverrideStatus.CONSTRUCTION),
    ("out of order", RoomOverrideStatus.OUT_OF_ORDER),
    ("repair", RoomOverrideStatus.REPAIR),
    ("available", RoomOverrideStatus.AVAILABLE),
)


def parse_override_status(raw) -> Optional[RoomOverrideStatus]:
    text = str(raw or "").strip().lower()
    if not text:
        return None
    for keyword, status in _KEYWORDS:
        if keyword in text:
            return status
    return None


def override_columns(sheet) -> Tuple[Optional[int], Optional[int]]:
    """Primera columna cuyo encabezado contiene "room" y primera con "status" o "type"."""
    headers = [h.lower() for h in sheet.header_row()]
    room_col = next((i for i, h in enumerate(headers, start=1) if "room" in h), None)
    status_col = next((i for i, h in enumerate(headers, start=1) if "status" in h or "type" in h), None)
    return room_col, status_col


def load_room_overrides(sheet) -> Dict[str, RoomOverrideStatus]:
    """
    Lee la hoja Rooms_Master. Estados desconocidos se registran y se ignoran.

    Returns:
        {habitación normalizada: RoomOverrideStatus}
    """
    overrides: Dict[str, RoomOverrideStatus] = {}
    if sheet is None:
        return overrides

    room_col, status_col = override_columns(sheet)
    if room_col is None or status_col is None:
        log_event("rooms", "system", "Rooms_Master sin columnas", f"headers={sheet.header_row()}")
        return overrides

    for row in sheet.data_rows():
        room = normalize_room(sheet.get_value(row, room_col))
        raw_status = sheet.get_value(row, status_col)
        if not room or not raw_status:
            continue
        status = parse_override_status(raw_status)
        if status is None:
            log_event("rooms", "system", "Estado de mantenimiento desconocido", f"room={room}, status={raw_status}")
            continue
        overrides[room] = status
    return overrides


def active_overrides(overrides: Dict[str, RoomOverrideStatus]) -> Dict[str, RoomOverrideStatus]:
    """Sólo las habitaciones fuera de servicio (status distinto de Available)"""
    return {room: status for room, status in overrides.items() if status != RoomOverrideStatus.AVAILABLE}
