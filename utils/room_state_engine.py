"""
Room State Engine - estado actual de cada habitación a partir del historial

El ledger es append-only y las fechas las carga el usuario, así que el único
orden confiable es la posición de la fila. Para una habitación:

1. la ÚLTIMA fila con check-in y sin check-out => Occupied
2. si no hay ocupación activa, la última fila con check-out (no histórica):
   sin housekeeping => Ready for Cleaning, con housekeeping => Available
3. sin filas => Available

Además de derivar el estado, el engine aplica las correcciones sobre otras
filas de la misma habitación (status "Cleaned - ReadyFor Rent" viejos,
filas históricas) que disparan los eventos de check-in y housekeeping.
"""

from typing import Dict, List, Optional

from config import HK_DONE_TEXT
from models.booking import BookingRecord, RoomSnapshot, RoomState, normalize_room
from models.room_override import RoomOverrideStatus
from utils.logging_utils import log_event
from utils.timezone import format_hotel_time


def room_sort_key(room: str):
    """Habitaciones numéricas primero y en orden numérico"""
    return (0, int(room), "") if room.isdigit() else (1, 0, room)


class RoomIndex:
    """
    Arena de posiciones de fila + índice secundario habitación -> filas en
    orden ascendente. Se construye una vez por lote de operaciones.
    """

    def __init__(self):
        self._by_room: Dict[str, List[int]] = {}

    @classmethod
    def build(cls, sheet, schema) -> "RoomIndex":
        index = cls()
        room_col = schema.col("room")
        if room_col is None:
            return index
        for row in sheet.data_rows():
            index.add(sheet.get_value(row, room_col), row)
        return index

    def add(self, room, row: int) -> None:
        key = normalize_room(room)
        if not key:
            # Filas sin habitación no participan de ningún escaneo
            return
        rows = self._by_room.setdefault(key, [])
        if rows and rows[-1] > row:
            rows.append(row)
            rows.sort()
        else:
            rows.append(row)

    def rooms(self) -> List[str]:
        return sorted(self._by_room, key=room_sort_key)

    def rows_for(self, room) -> List[int]:
        return list(self._by_room.get(normalize_room(room), []))

    def rows_before(self, room, row: int) -> List[int]:
        return [r for r in self.rows_for(room) if r < row]

    def rows_after(self, room, row: int) -> List[int]:
        return [r for r in self.rows_for(room) if r > row]


class RoomStateEngine:
    """Derivación y correcciones por habitación sobre una hoja del ledger"""

    def __init__(self, sheet, schema, index: Optional[RoomIndex] = None):
        self.sheet = sheet
        self.schema = schema
        self.index = index or RoomIndex.build(sheet, schema)

    def record(self, row: int) -> BookingRecord:
        return BookingRecord(self.sheet, self.schema, row)

    def records_for(self, room) -> List[BookingRecord]:
        return [self.record(r) for r in self.index.rows_for(room)]

    # =====================================================================
    # DERIVACIÓN
    # =====================================================================
    def detect_conflicts(self, room) -> List[int]:
        """Filas ocupadas a la vez para la misma habitación (vacío si no hay conflicto)"""
        active = [rec.row for rec in self.records_for(room) if rec.is_active]
        return active if len(active) > 1 else []

    def derive(self, room) -> RoomSnapshot:
        key = normalize_room(room)
        records = self.records_for(key)
        if not records:
            return RoomSnapshot(room=key, status=RoomState.AVAILABLE)

        active = [rec for rec in records if rec.is_active]
        if active:
            latest = active[-1]
            if len(active) > 1:
                log_event(
                    "room_state",
                    "system",
                    "Ocupación múltiple detectada",
                    f"room={key}, rows={[rec.row for rec in active]}, vigente={latest.row}",
                )
            return RoomSnapshot(
                room=key,
                status=RoomState.OCCUPIED,
                guest=latest.guest,
                check_in_time=latest.check_in_time,
                source_row=latest.row,
            )

        checked_out = [rec for rec in records if rec.is_checked_out and not rec.is_historical]
        if checked_out:
            last = checked_out[-1]
            if not last.is_hk_done:
                return RoomSnapshot(
                    room=key,
                    status=RoomState.READY_FOR_CLEANING,
                    guest=last.guest,
                    check_out_time=last.check_out_time,
                    source_row=last.row,
                )
            return RoomSnapshot(
                room=key,
                status=RoomState.AVAILABLE,
                source_row=last.row,
                cleaned_ready=last.is_cleaned_ready,
            )

        return RoomSnapshot(room=key, status=RoomState.AVAILABLE)

    def is_reoccupied_after(self, room, row: int) -> bool:
        """¿Alguna fila POSTERIOR de la habitación está ocupada (check-in sin check-out)?"""
        if not self.schema.has("room", "checkIn", "checkOut"):
            return False
        return any(self.record(r).is_active for r in self.index.rows_after(room, row))

    # =====================================================================
    # CORRECCIONES SOBRE OTRAS FILAS
    # =====================================================================
    def clear_stale_cleaned_status(self, room, row: int, usuario: str = "system") -> List[int]:
        """
        Nuevo check-in: filas ANTERIORES de la misma habitación que todavía
        anuncian "Cleaned - ReadyFor Rent" se limpian.
        """
        if not room or not self.schema.has("room", "hkStatus"):
            return []

        cleared = []
        for r in self.index.rows_before(room, row):
            rec = self.record(r)
            if rec.hk_status == HK_DONE_TEXT:
                rec.set("hkStatus", "")
                cleared.append(r)
                log_event("room_state", usuario, "Limpiar status cleaned viejo", f"room={room}, old_row={r}, new_row={row}")
        return cleared

    def mark_superseded_rows(self, room, row: int, usuario: str = "system") -> List[int]:
        """
        Nuevo check-in: filas ANTERIORES ya con check-out quedan históricas.
        Nunca toca la fila que dispara ni las posteriores.
        """
        if not room or not self.schema.has("room", "checkIn", "checkOut"):
            return []

        marked = []
        for r in self.index.rows_before(room, row):
            if self.record(r).is_checked_out and self.sheet.mark_historical(r):
                marked.append(r)
        if marked:
            log_event("room_state", usuario, "Filas históricas", f"room={room}, rows={marked}, new_row={row}")
        return marked

    def mark_if_superseded(self, room, row: int, usuario: str = "system") -> bool:
        """
        Check-out tardío: si la habitación ya tiene un check-in en una fila
        POSTERIOR, la fila que hace check-out queda histórica.
        """
        if not room or not self.schema.has("room", "checkIn", "checkOut"):
            return False
        if not self.record(row).is_checked_out:
            return False
        if not any(self.record(r).is_checked_in for r in self.index.rows_after(room, row)):
            return False

        marked = self.sheet.mark_historical(row)
        if marked:
            log_event("room_state", usuario, "Fila histórica por check-out tardío", f"room={room}, row={row}")
        return marked

    def refresh_historical_marks(self, usuario: str = "system") -> int:
        """
        Pasada completa: toda fila con check-out que tenga un check-in
        posterior para la misma habitación queda histórica.

        Returns:
            Cantidad de filas históricas encontradas
        """
        if not self.schema.has("room", "checkIn", "checkOut"):
            return 0

        count = 0
        for room in self.index.rooms():
            newer_check_in = False
            for r in reversed(self.index.rows_for(room)):
                rec = self.record(r)
                if newer_check_in and rec.is_checked_out:
                    self.sheet.mark_historical(r)
                    count += 1
                if rec.is_checked_in:
                    newer_check_in = True

        log_event("room_state", usuario, "Refrescar filas históricas", f"count={count}")
        return count

    # =====================================================================
    # VISTAS
    # =====================================================================
    def availability(self, overrides: Optional[Dict[str, RoomOverrideStatus]] = None) -> Dict[str, RoomSnapshot]:
        """Estado de todas las habitaciones; el override sólo cambia lo que se muestra"""
        overrides = overrides or {}
        rooms = set(self.index.rooms()) | set(overrides)

        board: Dict[str, RoomSnapshot] = {}
        for room in sorted(rooms, key=room_sort_key):
            snapshot = self.derive(room)
            status = overrides.get(room)
            if status is not None and status != RoomOverrideStatus.AVAILABLE:
                snapshot.override = status.value
            board[room] = snapshot
        return board

    def pending_housekeeping(self) -> List[dict]:
        """Filas con check-out y sin housekeeping (se omiten las históricas)"""
        pending = []
        for room in self.index.rooms():
            for rec in self.records_for(room):
                if rec.is_checked_out and not rec.is_hk_done and not rec.is_historical:
                    pending.append({
                        "row": rec.row,
                        "room": rec.room,
                        "guest": rec.guest,
                        "check_out_time": format_hotel_time(rec.check_out_time),
                    })
        return sorted(pending, key=lambda item: item["row"])
