from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Path, Query, status

from database.ledger_store import LedgerStore, get_store
from models.booking import BookingRecord
from schemas.ledger import (
    BulkResultOut,
    BulkRowsRequest,
    BulkTaxRateRequest,
    CellEdit,
    EditOutcomeOut,
    GuestHistoryEntry,
    HeaderChange,
    InvoiceOut,
    InvoiceRequest,
    InvoiceSequenceOut,
    RoomStateOut,
    RowCreate,
    RowOut,
)
from services.booking_lifecycle import BookingLifecycleController, EditOutcome
from services.invoice_service import InvoiceService
from services.ledger_queries import guest_history
from utils.ledger_errors import InvalidNumericInput, LockUnavailable, ProtectedFieldEdit, SchemaMissing
from utils.logging_utils import log_event
from utils.schema_resolver import repair_headers, resolve_column_reference, resolve_schema

router = APIRouter(prefix="/ledger", tags=["Ledger"])

_invoice_service: Optional[InvoiceService] = None


def get_invoice_service() -> InvoiceService:
    global _invoice_service
    if _invoice_service is None:
        _invoice_service = InvoiceService()
    return _invoice_service


# ===== HELPERS =====

def _controller(store: LedgerStore, invoice_service: InvoiceService) -> BookingLifecycleController:
    return BookingLifecycleController(store.workbook().frontdesk, invoice_service=invoice_service)


def snapshot_out(snapshot, **extra) -> dict:
    return {
        "room": snapshot.room,
        "status": snapshot.status.value,
        "display_status": snapshot.display_status,
        "guest": snapshot.guest,
        "check_in_time": snapshot.check_in_time,
        "check_out_time": snapshot.check_out_time,
        "source_row": snapshot.source_row,
        "cleaned_ready": snapshot.cleaned_ready,
        "override": snapshot.override,
        **extra,
    }


def _outcome_out(outcome: EditOutcome) -> EditOutcomeOut:
    invoice = InvoiceOut.model_validate(outcome.invoice) if outcome.invoice else None
    return EditOutcomeOut(
        row=outcome.row,
        field=outcome.field,
        accepted=outcome.accepted,
        transition=outcome.transition,
        room=outcome.room,
        room_state=RoomStateOut(**snapshot_out(outcome.room_state)) if outcome.room_state else None,
        invoice=invoice,
        invoice_no=invoice.invoice_no if invoice else None,
        corrections=outcome.corrections,
        warnings=outcome.warnings,
        error_code=outcome.error_code,
        message=outcome.message,
    )


def _row_out(sheet, row: int) -> RowOut:
    headers = sheet.header_row()
    record = BookingRecord(sheet, resolve_schema(headers), row)
    values = {title or f"col{i}": sheet.get_value(row, i) for i, title in enumerate(headers, start=1)}
    return RowOut(row=row, stage=record.stage.value, historical=record.is_historical, values=values)


def _check_row(sheet, row: int) -> None:
    if not sheet.has_row(row):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"Fila {row} no encontrada")


# ===== EDICIONES =====

@router.post("/edits", response_model=EditOutcomeOut)
async def aplicar_edicion(
    payload: CellEdit,
    store: LedgerStore = Depends(get_store),
    invoice_service: InvoiceService = Depends(get_invoice_service),
):
    """Procesa una edición de celda (equivale al onEdit de la planilla)"""
    controller = _controller(store, invoice_service)
    try:
        outcome = controller.apply_edit(payload.row, payload.column, payload.value, payload.usuario)
    except KeyError as e:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(e).strip("'\""))
    except IndexError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))

    store.save()
    result = _outcome_out(outcome)
    if outcome.error_code == ProtectedFieldEdit.code:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=result.model_dump(mode="json"))
    return result


# ===== FILAS =====

@router.get("/rows", response_model=List[RowOut])
async def listar_filas(
    offset: int = Query(0, ge=0),
    limit: int = Query(100, ge=1, le=1000),
    store: LedgerStore = Depends(get_store),
):
    sheet = store.workbook().frontdesk
    rows = list(sheet.data_rows())[offset:offset + limit]
    return [_row_out(sheet, r) for r in rows]


@router.get("/rows/{row}", response_model=RowOut)
async def obtener_fila(row: int = Path(..., ge=2), store: LedgerStore = Depends(get_store)):
    sheet = store.workbook().frontdesk
    _check_row(sheet, row)
    return _row_out(sheet, row)


@router.post("/rows", response_model=RowOut, status_code=status.HTTP_201_CREATED)
async def agregar_fila(payload: RowCreate, store: LedgerStore = Depends(get_store)):
    """Alta de un registro (intake). Los campos automáticos no se aceptan acá."""
    sheet = store.workbook().frontdesk
    headers = sheet.header_row()
    schema = resolve_schema(headers)

    values = [""] * len(headers)
    for reference, value in payload.values.items():
        column = resolve_column_reference(schema, headers, reference)
        if column is None or column > len(headers):
            raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=f"Columna desconocida: {reference}")
        if schema.key_for_column(column) in ("checkInTime", "checkOutTime", "cleanedTime"):
            raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=f"Columna protegida: {reference}")
        values[column - 1] = value

    row = sheet.append_row(values)
    store.save()
    log_event("ledger", payload.usuario, "Alta de registro", f"row={row}")
    return _row_out(sheet, row)


# ===== INVOICES =====

@router.post("/rows/{row}/invoice", response_model=InvoiceOut)
async def generar_invoice(
    payload: InvoiceRequest,
    row: int = Path(..., ge=2),
    store: LedgerStore = Depends(get_store),
    invoice_service: InvoiceService = Depends(get_invoice_service),
):
    """Generar / reimprimir el invoice de una fila"""
    sheet = store.workbook().frontdesk
    _check_row(sheet, row)
    try:
        outcome = _controller(store, invoice_service).generate_invoice(row, force=payload.force, usuario=payload.usuario)
    except LockUnavailable as e:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=e.message)
    store.save()
    return InvoiceOut.model_validate(outcome)


@router.get("/invoices/sequence", response_model=InvoiceSequenceOut)
async def secuencia_invoices(invoice_service: InvoiceService = Depends(get_invoice_service)):
    allocator = invoice_service.allocator
    counter = allocator.peek()
    return InvoiceSequenceOut(counter=counter, next_invoice_no=allocator.format(counter + 1))


# ===== OPERACIONES MASIVAS =====

@router.post("/bulk/checkout", response_model=BulkResultOut)
async def checkout_masivo(
    payload: BulkRowsRequest,
    store: LedgerStore = Depends(get_store),
    invoice_service: InvoiceService = Depends(get_invoice_service),
):
    try:
        result = _controller(store, invoice_service).bulk_checkout(payload.rows, payload.usuario)
    except SchemaMissing as e:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=e.message)
    store.save()
    return BulkResultOut.model_validate(result)


@router.post("/bulk/tax-rate", response_model=BulkResultOut)
async def tasa_masiva(
    payload: BulkTaxRateRequest,
    store: LedgerStore = Depends(get_store),
    invoice_service: InvoiceService = Depends(get_invoice_service),
):
    try:
        result = _controller(store, invoice_service).bulk_update_tax_rate(payload.rows, payload.tax_rate, payload.usuario)
    except (SchemaMissing, InvalidNumericInput) as e:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=e.message)
    store.save()
    return BulkResultOut.model_validate(result)


@router.post("/bulk/invoices", response_model=BulkResultOut)
async def invoices_masivos(
    payload: BulkRowsRequest,
    store: LedgerStore = Depends(get_store),
    invoice_service: InvoiceService = Depends(get_invoice_service),
):
    result = _controller(store, invoice_service).bulk_generate_invoices(payload.rows, payload.usuario)
    store.save()
    return BulkResultOut.model_validate(result)


# ===== MANTENIMIENTO =====

@router.post("/headers/repair", response_model=List[HeaderChange])
async def reparar_encabezados(usuario: str = Query("frontdesk"), store: LedgerStore = Depends(get_store)):
    changes = repair_headers(store.workbook().frontdesk, usuario)
    if changes:
        store.save()
    return [HeaderChange(column=c, old=o, new=n) for c, o, n in changes]


@router.post("/historical/refresh")
async def refrescar_historicas(
    usuario: str = Query("frontdesk"),
    store: LedgerStore = Depends(get_store),
    invoice_service: InvoiceService = Depends(get_invoice_service),
):
    count = _controller(store, invoice_service).refresh_historical(usuario)
    return {"historical_rows": count}


@router.get("/guests/history", response_model=List[GuestHistoryEntry])
async def historial_huesped(q: str = Query(..., min_length=1), store: LedgerStore = Depends(get_store)):
    try:
        return guest_history(store.workbook().frontdesk, q)
    except SchemaMissing as e:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=e.message)
