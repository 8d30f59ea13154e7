from typing import List

from fastapi import APIRouter, Depends, HTTPException, status

from database.ledger_store import LedgerStore, get_store
from endpoints.ledger import snapshot_out
from models.booking import normalize_room
from models.ledger import LedgerSheet
from models.room_override import (
    RoomOverrideStatus,
    active_overrides,
    load_room_overrides,
    override_columns,
    parse_override_status,
)
from schemas.ledger import PendingHousekeepingOut, RoomDetailOut, RoomOverrideUpdate, RoomStateOut
from utils.logging_utils import log_event
from utils.room_state_engine import RoomStateEngine
from utils.schema_resolver import resolve_schema

router = APIRouter(prefix="/rooms", tags=["Rooms"])

ROOMS_MASTER_HEADERS = ["Room #", "Room Status"]


def _engine(store: LedgerStore) -> RoomStateEngine:
    sheet = store.workbook().frontdesk
    return RoomStateEngine(sheet, resolve_schema(sheet.header_row()))


@router.get("", response_model=List[RoomStateOut])
async def tablero_habitaciones(store: LedgerStore = Depends(get_store)):
    """Estado de todas las habitaciones (overrides de mantenimiento incluidos)"""
    overrides = load_room_overrides(store.workbook().rooms_master)
    board = _engine(store).availability(overrides)
    return [RoomStateOut(**snapshot_out(snapshot)) for snapshot in board.values()]


@router.get("/overrides")
async def habitaciones_fuera_de_servicio(store: LedgerStore = Depends(get_store)):
    """Habitaciones con override activo (Maintenance, Out of Order, ...)"""
    overrides = active_overrides(load_room_overrides(store.workbook().rooms_master))
    return {room: status.value for room, status in overrides.items()}


@router.get("/housekeeping/pending", response_model=List[PendingHousekeepingOut])
async def housekeeping_pendiente(store: LedgerStore = Depends(get_store)):
    return _engine(store).pending_housekeeping()


@router.get("/{room}", response_model=RoomDetailOut)
async def estado_habitacion(room: str, store: LedgerStore = Depends(get_store)):
    key = normalize_room(room)
    if not key:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail="Habitación inválida")

    engine = _engine(store)
    snapshot = engine.derive(key)
    override = load_room_overrides(store.workbook().rooms_master).get(key)
    if override is not None and override != RoomOverrideStatus.AVAILABLE:
        snapshot.override = override.value
    return RoomDetailOut(
        **snapshot_out(snapshot, rows=engine.index.rows_for(key), conflicts=engine.detect_conflicts(key))
    )


@router.put("/{room}/override", response_model=RoomStateOut)
async def actualizar_override(room: str, payload: RoomOverrideUpdate, store: LedgerStore = Depends(get_store)):
    """Marca una habitación como Maintenance / Out of Order / etc. ("Available" la libera)"""
    key = normalize_room(room)
    override = parse_override_status(payload.status)
    if not key or override is None:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=f"Estado desconocido: {payload.status}")

    workbook = store.workbook()
    if workbook.rooms_master is None:
        workbook.rooms_master = LedgerSheet(store.rooms_name, headers=ROOMS_MASTER_HEADERS)
    sheet = workbook.rooms_master

    room_col, status_col = override_columns(sheet)
    if room_col is None or status_col is None:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail="Rooms_Master sin columnas Room / Status")

    target = next((r for r in sheet.data_rows() if normalize_room(sheet.get_value(r, room_col)) == key), None)
    if target is None:
        target = sheet.append_row([])
        sheet.set_value(target, room_col, key)
    sheet.set_value(target, status_col, override.value)
    store.save()
    log_event("rooms", payload.usuario, "Override de habitación", f"room={key}, status={override.value}")

    snapshot = _engine(store).derive(key)
    if override != RoomOverrideStatus.AVAILABLE:
        snapshot.override = override.value
    return RoomStateOut(**snapshot_out(snapshot))
