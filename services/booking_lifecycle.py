"""
Booking Lifecycle Controller

Cada edición de celda del ledger entra por acá. El controller:
- resuelve columnas (una vez por edición / lote)
- decide qué transición aplica (New -> CheckedIn -> CheckedOut -> HousekeepingDone)
- recalcula montos, dispara eventos de habitación y genera el invoice al check-out
- revierte ediciones sobre campos automáticos

Los errores se atrapan por edición: una fila mala nunca bloquea las demás.
"""

import dataclasses
from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterable, List, Optional

from config import HK_DONE_TEXT, HK_READY_TEXT, PAYMENT_TYPES, USER_MESSAGES
from models.booking import BookingRecord, RoomSnapshot, RoomState, to_yes
from models.ledger import HEADER_ROW
from services.invoice_service import InvoiceOutcome, InvoiceService
from utils.domain_events import (
    EventDispatcher,
    ReactionContext,
    RoomCheckedIn,
    RoomCheckedOut,
    RoomHousekeepingDone,
)
from utils.ledger_errors import (
    InvalidNumericInput,
    LedgerError,
    LockUnavailable,
    ProtectedFieldEdit,
)
from utils.logging_utils import log_debug, log_error, log_event
from utils.quote_calculator import (
    is_numeric_input,
    normalize_tax_rate,
    parse_number,
    update_quote_for_row,
    update_quote_from_total,
)
from utils.room_state_engine import RoomStateEngine
from utils.schema_resolver import (
    TIMESTAMP_FIELDS,
    repair_headers,
    resolve_column_reference,
    resolve_schema,
)
from utils.timezone import get_hotel_now

# Transiciones reportadas en EditOutcome
TRANSITION_QUOTE_FORWARD = "quote_forward"
TRANSITION_QUOTE_BACKWARD = "quote_backward"
TRANSITION_PAYMENT_TYPE = "payment_type"
TRANSITION_CHECK_IN = "check_in"
TRANSITION_CHECK_OUT = "check_out"
TRANSITION_HOUSEKEEPING_DONE = "housekeeping_done"
TRANSITION_HEADER_REPAIR = "header_repair"

QUOTE_INPUT_FIELDS = ("amount", "nights", "taxRate")


# =====================================================================
# REACCIONES A EVENTOS DE HABITACIÓN
# =====================================================================

def clear_stale_cleaned_status(event: RoomCheckedIn, ctx: ReactionContext) -> List[int]:
    return ctx.engine.clear_stale_cleaned_status(event.room, event.row, event.usuario)


def mark_superseded_rows(event: RoomCheckedIn, ctx: ReactionContext) -> List[int]:
    return ctx.engine.mark_superseded_rows(event.room, event.row, event.usuario)


def mark_late_checkout_superseded(event: RoomCheckedOut, ctx: ReactionContext) -> bool:
    return ctx.engine.mark_if_superseded(event.room, event.row, event.usuario)


def resolve_cleaned_status(event: RoomHousekeepingDone, ctx: ReactionContext) -> bool:
    """
    Housekeeping terminado: si la habitación ya fue re-ocupada por una fila
    posterior no se anuncia "Cleaned - ReadyFor Rent"; se limpia el status.

    Returns:
        True si la habitación ya estaba re-ocupada
    """
    reoccupied = ctx.engine.is_reoccupied_after(event.room, event.row)
    record = ctx.engine.record(event.row)
    record.set("hkStatus", "" if reoccupied else HK_DONE_TEXT)
    log_event(
        "housekeeping",
        event.usuario,
        "HK Done procesado",
        f"room={event.room}, row={event.row}, reocupada={reoccupied}",
    )
    return reoccupied


def build_default_dispatcher() -> EventDispatcher:
    dispatcher = EventDispatcher()
    dispatcher.subscribe(RoomCheckedIn, "clear_stale_cleaned_status", clear_stale_cleaned_status)
    dispatcher.subscribe(RoomCheckedIn, "mark_superseded_rows", mark_superseded_rows)
    dispatcher.subscribe(RoomCheckedOut, "mark_late_checkout_superseded", mark_late_checkout_superseded)
    dispatcher.subscribe(RoomHousekeepingDone, "resolve_cleaned_status", resolve_cleaned_status)
    return dispatcher


def subscribe_dashboard_refresh(dispatcher: EventDispatcher, callback: Callable[[Any], Any]) -> None:
    """Refresco del tablero (colaborador externo) después de check-out y housekeeping"""
    reaction = lambda event, ctx: callback(event)  # noqa: E731
    dispatcher.subscribe(RoomCheckedOut, "dashboard_refresh", reaction)
    dispatcher.subscribe(RoomHousekeepingDone, "dashboard_refresh", reaction)


# =====================================================================
# RESULTADOS
# =====================================================================

@dataclass
class EditOutcome:
    row: int
    field: Optional[str] = None
    accepted: bool = True
    transition: Optional[str] = None
    room: str = ""
    room_state: Optional[RoomSnapshot] = None
    invoice: Optional[InvoiceOutcome] = None
    corrections: Dict[str, Any] = dataclasses.field(default_factory=dict)
    warnings: List[Dict[str, str]] = dataclasses.field(default_factory=list)
    error_code: Optional[str] = None
    message: Optional[str] = None

    def add_warning(self, code: str, message: str, severity: str = "warning") -> None:
        self.warnings.append({"code": code, "message": message, "severity": severity})


@dataclass
class BulkResult:
    processed: List[int] = dataclasses.field(default_factory=list)
    skipped: List[int] = dataclasses.field(default_factory=list)
    failures: Dict[int, str] = dataclasses.field(default_factory=dict)
    invoices: Dict[int, str] = dataclasses.field(default_factory=dict)


class BookingLifecycleController:
    """Máquina de estados por fila, disparada por ediciones de celda"""

    def __init__(
        self,
        sheet,
        invoice_service: Optional[InvoiceService] = None,
        dispatcher: Optional[EventDispatcher] = None,
        clock: Callable[[], Any] = get_hotel_now,
    ):
        self.sheet = sheet
        self.invoice_service = invoice_service or InvoiceService()
        self.dispatcher = dispatcher or build_default_dispatcher()
        self.clock = clock

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------
    def build_engine(self) -> RoomStateEngine:
        schema = resolve_schema(self.sheet.header_row())
        return RoomStateEngine(self.sheet, schema)

    def _dispatch(self, event, engine: RoomStateEngine, outcome: EditOutcome):
        context = ReactionContext(sheet=self.sheet, schema=engine.schema, engine=engine)
        result = self.dispatcher.dispatch(event, context)
        for name, error in result.failures:
            outcome.add_warning("REACTION_FAILED", f"{name}: {error}")
        return result

    def _revert(self, row: int, column: int, old_value: Any) -> None:
        self.sheet.set_value(row, column, old_value)

    # ------------------------------------------------------------------
    # Entrada principal
    # ------------------------------------------------------------------
    def apply_edit(self, row: int, column, value: Any, usuario: str = "frontdesk") -> EditOutcome:
        """
        Aplica una edición de celda y procesa sus efectos.

        Args:
            row: fila 1-based (1 = encabezados)
            column: número de columna, clave lógica o título de encabezado
            value: nuevo valor de la celda
            usuario: quién editó (para auditoría)

        Raises:
            KeyError: columna desconocida
            IndexError: fila inexistente
        """
        headers = self.sheet.header_row()
        schema = resolve_schema(headers)
        col = resolve_column_reference(schema, headers, column)
        if col is None:
            raise KeyError(f"Unknown column: {column}")

        # Edición en encabezados: sólo mantener los encabezados sanos
        if row == HEADER_ROW:
            self.sheet.set_header(col, value)
            changes = repair_headers(self.sheet, usuario)
            outcome = EditOutcome(row=row, transition=TRANSITION_HEADER_REPAIR)
            outcome.corrections["headers"] = [{"column": c, "old": o, "new": n} for c, o, n in changes]
            return outcome

        if not self.sheet.has_row(row):
            raise IndexError(f"Row {row} does not exist")

        old_value = self.sheet.get_value(row, col)
        log_debug("ledger", "Edición recibida", row=row, column=col, usuario=usuario)
        self.sheet.set_value(row, col, value)

        outcome = EditOutcome(row=row, field=schema.key_for_column(col))
        record = BookingRecord(self.sheet, schema, row)
        outcome.room = record.room

        try:
            self._process_edit(record, col, value, old_value, usuario, outcome)
        except ProtectedFieldEdit as e:
            outcome.accepted = False
            outcome.error_code = e.code
            outcome.message = e.message
            log_event("ledger", usuario, "Edición protegida revertida", f"row={row}, field={e.field}, room={outcome.room}")
        except LedgerError as e:
            outcome.error_code = e.code
            outcome.message = e.message
            log_error("ledger", "Error procesando edición", e, row=row, room=outcome.room, field=outcome.field)
        except Exception as e:
            outcome.error_code = "PROCESSING_ERROR"
            outcome.message = str(e)
            log_error("ledger", "Error procesando edición", e, row=row, room=outcome.room, field=outcome.field)
        return outcome

    def _process_edit(self, record: BookingRecord, column: int, value: Any, old_value: Any, usuario: str, outcome: EditOutcome) -> None:
        field_key = outcome.field
        schema = record.schema
        text = str(value if value is not None else "").strip()
        flag = to_yes(value)

        # Total con impuesto: bloqueado tras el check-out, si no cálculo inverso
        if field_key == "total":
            if record.is_checked_out:
                self._revert(record.row, column, old_value)
                raise ProtectedFieldEdit("total", USER_MESSAGES["total_locked"], row=record.row, room=record.room)
            if text and is_numeric_input(value):
                if update_quote_from_total(self.sheet, schema, record.row, value, usuario):
                    outcome.transition = TRANSITION_QUOTE_BACKWARD
            elif text:
                outcome.add_warning(InvalidNumericInput.code, f"Total '{text}' is not numeric; nothing recalculated")
            return

        if field_key in QUOTE_INPUT_FIELDS:
            if record.is_checked_out:
                outcome.add_warning("QUOTE_LOCKED", "Record already checked out; totals were not recalculated", "info")
                return
            if text and not is_numeric_input(value):
                outcome.add_warning(InvalidNumericInput.code, f"'{text}' is not numeric; using the default value")
            if update_quote_for_row(self.sheet, schema, record.row):
                outcome.transition = TRANSITION_QUOTE_FORWARD
            return

        if field_key == "paymentType" and text:
            self._handle_payment_type(record, text, usuario, outcome)
            return

        if field_key == "checkIn" and flag:
            self._check_in(record, usuario, outcome)
            return

        if field_key == "checkOut" and flag:
            self._check_out(record, usuario, outcome)
            return

        if field_key in TIMESTAMP_FIELDS:
            self._revert(record.row, column, old_value)
            raise ProtectedFieldEdit(field_key, USER_MESSAGES["timestamp_locked"], row=record.row, room=record.room)

        if field_key == "hkDone" and flag:
            self._housekeeping_done(record, usuario, outcome)

    # ------------------------------------------------------------------
    # Transiciones
    # ------------------------------------------------------------------
    def _handle_payment_type(self, record: BookingRecord, payment_type: str, usuario: str, outcome: EditOutcome) -> None:
        outcome.transition = TRANSITION_PAYMENT_TYPE
        lowered = payment_type.lower()
        if not any(pt.lower() in lowered for pt in PAYMENT_TYPES):
            # Se acepta igual, sólo queda registrado
            outcome.add_warning("NON_STANDARD_PAYMENT_TYPE", f"Non-standard payment type: {payment_type}", "info")
            log_event("ledger", usuario, "Tipo de pago no estándar", f"row={record.row}, payment_type={payment_type}")

    def _check_in(self, record: BookingRecord, usuario: str, outcome: EditOutcome) -> None:
        outcome.transition = TRANSITION_CHECK_IN
        record.stamp_once("checkInTime", self.clock())
        update_quote_for_row(self.sheet, record.schema, record.row)

        if record.room:
            engine = RoomStateEngine(self.sheet, record.schema)
            event = RoomCheckedIn(room=record.room, row=record.row, guest=record.guest, usuario=usuario)
            result = self._dispatch(event, engine, outcome)
            outcome.corrections.update({
                "cleared_cleaned_rows": result.results.get("clear_stale_cleaned_status", []),
                "historical_rows": result.results.get("mark_superseded_rows", []),
            })

            conflicts = engine.detect_conflicts(record.room)
            if conflicts:
                outcome.add_warning(
                    "MULTIPLE_OCCUPANCY",
                    f"Room {record.room} has more than one open check-in (rows {conflicts}); the latest row wins",
                )
            outcome.room_state = engine.derive(record.room)

        log_event("checkin", usuario, "Check-in procesado", f"room={record.room}, row={record.row}")

    def _check_out(self, record: BookingRecord, usuario: str, outcome: EditOutcome) -> None:
        outcome.transition = TRANSITION_CHECK_OUT
        if not to_yes(record.get("checkIn")) and not record.check_in_time:
            outcome.add_warning("CHECKOUT_WITHOUT_CHECKIN", "Checked out a record that was never checked in", "info")

        record.stamp_once("checkOutTime", self.clock())
        record.set("hkStatus", HK_READY_TEXT)
        update_quote_for_row(self.sheet, record.schema, record.row)

        try:
            outcome.invoice = self.invoice_service.generate_for_row(self.sheet, record.schema, record.row, force=False, usuario=usuario)
        except LockUnavailable as e:
            outcome.error_code = e.code
            outcome.message = USER_MESSAGES["lock_unavailable"]
            outcome.add_warning(e.code, "Invoice was not generated; retry from the invoice menu", "error")
            log_error("checkout", "Invoice no generado", e, row=record.row, room=record.room)
        except Exception as e:
            outcome.add_warning("INVOICE_FAILED", f"Invoice was not generated: {e}", "error")
            log_error("checkout", "Invoice no generado", e, row=record.row, room=record.room)

        if record.room:
            engine = RoomStateEngine(self.sheet, record.schema)
            result = self._dispatch(RoomCheckedOut(room=record.room, row=record.row, guest=record.guest, usuario=usuario), engine, outcome)
            if result.results.get("mark_late_checkout_superseded"):
                outcome.corrections["historical_rows"] = [record.row]
            outcome.room_state = engine.derive(record.room)

        log_event("checkout", usuario, "Check-out procesado", f"room={record.room}, row={record.row}")

    def _housekeeping_done(self, record: BookingRecord, usuario: str, outcome: EditOutcome) -> None:
        outcome.transition = TRANSITION_HOUSEKEEPING_DONE
        record.stamp_once("cleanedTime", self.clock())
        if not record.room:
            return

        engine = RoomStateEngine(self.sheet, record.schema)
        result = self._dispatch(RoomHousekeepingDone(room=record.room, row=record.row, usuario=usuario), engine, outcome)
        reoccupied = bool(result.results.get("resolve_cleaned_status"))
        outcome.corrections["reoccupied"] = reoccupied

        snapshot = engine.derive(record.room)
        if not reoccupied and snapshot.status == RoomState.AVAILABLE and snapshot.source_row == record.row:
            # "Cleaned" es momentáneo: después la habitación se deriva como Available
            snapshot.status = RoomState.CLEANED
        outcome.room_state = snapshot

    # =====================================================================
    # OPERACIONES MANUALES Y MASIVAS
    # =====================================================================
    def _valid_rows(self, rows: Iterable[int], result: BulkResult) -> List[int]:
        valid = []
        for row in rows:
            if self.sheet.has_row(row):
                valid.append(row)
            else:
                result.skipped.append(row)
        return valid

    def generate_invoice(self, row: int, force: bool = True, usuario: str = "frontdesk") -> InvoiceOutcome:
        """Generar / reimprimir invoice de una fila (LockUnavailable se propaga)"""
        if not self.sheet.has_row(row):
            raise IndexError(f"Row {row} does not exist")
        schema = resolve_schema(self.sheet.header_row())
        if not BookingRecord(self.sheet, schema, row).is_checked_out:
            update_quote_for_row(self.sheet, schema, row)
        return self.invoice_service.generate_for_row(self.sheet, schema, row, force=force, usuario=usuario)

    def bulk_checkout(self, rows: Iterable[int], usuario: str = "frontdesk") -> BulkResult:
        """Check-out de las filas con check-in y sin check-out; el resto se omite"""
        result = BulkResult()
        schema = resolve_schema(self.sheet.header_row())
        schema.require("checkOut")

        for row in self._valid_rows(rows, result):
            record = BookingRecord(self.sheet, schema, row)
            if not (record.is_checked_in and not record.is_checked_out):
                result.skipped.append(row)
                continue
            outcome = EditOutcome(row=row, field="checkOut", room=record.room)
            try:
                record.set("checkOut", "Yes")
                self._check_out(record, usuario, outcome)
            except Exception as e:
                result.failures[row] = str(e)
                log_error("bulk", "Error en check-out masivo", e, row=row, room=record.room)
                continue
            if outcome.error_code:
                result.failures[row] = outcome.message or outcome.error_code
            else:
                result.processed.append(row)
            if outcome.invoice and outcome.invoice.invoice_no:
                result.invoices[row] = outcome.invoice.invoice_no

        log_event("bulk", usuario, "Check-out masivo", f"procesadas={len(result.processed)}, omitidas={len(result.skipped)}")
        return result

    def bulk_update_tax_rate(self, rows: Iterable[int], tax_input: Any, usuario: str = "frontdesk") -> BulkResult:
        """
        Actualiza la tasa de impuesto y recalcula. Las filas con check-out se
        omiten porque su total ya no puede cambiar.
        """
        number = parse_number(tax_input)
        tax_rate = normalize_tax_rate(tax_input) if number is not None and number > 0 else None
        if tax_rate is None or tax_rate > 1:
            raise InvalidNumericInput(f"Invalid tax rate: {tax_input}. Use a value between 0 and 1 (e.g. 0.13) or a percentage (e.g. 13%).")

        result = BulkResult()
        schema = resolve_schema(self.sheet.header_row())
        schema.require("taxRate")

        for row in self._valid_rows(rows, result):
            record = BookingRecord(self.sheet, schema, row)
            if record.is_checked_out:
                result.skipped.append(row)
                continue
            try:
                record.set("taxRate", tax_rate)
                update_quote_for_row(self.sheet, schema, row)
                result.processed.append(row)
            except Exception as e:
                result.failures[row] = str(e)
                log_error("bulk", "Error actualizando tasa", e, row=row, room=record.room)

        log_event("bulk", usuario, "Tasa de impuesto masiva", f"tasa={tax_rate}, procesadas={len(result.processed)}")
        return result

    def bulk_generate_invoices(self, rows: Iterable[int], usuario: str = "frontdesk") -> BulkResult:
        """Regenera invoices (force) fila por fila; un fallo no corta el lote"""
        result = BulkResult()
        for row in self._valid_rows(rows, result):
            try:
                invoice = self.generate_invoice(row, force=True, usuario=usuario)
            except Exception as e:
                result.failures[row] = str(e)
                log_error("bulk", "Error generando invoice", e, row=row)
                continue
            if invoice.generated:
                result.processed.append(row)
                result.invoices[row] = invoice.invoice_no
            else:
                result.skipped.append(row)

        log_event("bulk", usuario, "Invoices masivos", f"generados={len(result.processed)}, fallidos={len(result.failures)}")
        return result

    def refresh_historical(self, usuario: str = "frontdesk") -> int:
        return self.build_engine().refresh_historical_marks(usuario)
