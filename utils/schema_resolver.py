"""
Schema Resolver - resuelve campos lógicos del ledger a columnas físicas

Los encabezados de la planilla cambian de nombre con el tiempo (mayúsculas,
"Checkout" vs "CheckOut", etc). Acá se resuelven una sola vez por lote de
operaciones y el resto del sistema consulta columnas vía LedgerSchema.
"""

from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Tuple

from utils.ledger_errors import SchemaMissing
from utils.logging_utils import log_event


@dataclass(frozen=True)
class FieldSpec:
    key: str
    canonical: str
    aliases: Tuple[str, ...] = ()
    required: bool = False


# =====================================================================
# CAMPOS DEL LEDGER
# =====================================================================
LEDGER_FIELDS: Tuple[FieldSpec, ...] = (
    FieldSpec("date", "Date"),
    FieldSpec("room", "Room #", required=True),
    FieldSpec("guest", "Full Name", required=True),
    FieldSpec("amount", "Amount", required=True),
    FieldSpec("nights", "Number of Night(s)", required=True),
    FieldSpec("subtotal", "Subtotal", required=True),
    FieldSpec("total", "Total With Tax", required=True),
    FieldSpec("paymentType", "Payment Type"),
    FieldSpec("checkIn", "CheckIn", ("Checkin", "Check In"), required=True),
    FieldSpec("checkInTime", "CheckInTime", required=True),
    FieldSpec("checkOut", "CheckOut", ("Checkout", "Check Out"), required=True),
    FieldSpec("checkOutTime", "CheckOutTime", required=True),
    FieldSpec("hkStatus", "HK Status"),
    FieldSpec("hkDone", "HK Done"),
    FieldSpec("cleanedTime", "CleanedTime"),
    FieldSpec("deskNotes", "Desk Notes"),
    FieldSpec("hkNotes", "HK Notes"),
    FieldSpec("taxRate", "Tax Rate", required=True),
    FieldSpec("guestEmail", "Guest Email"),
    FieldSpec("processor", "Payment Processor"),
    FieldSpec("receipt", "Processor Receipt #"),
    FieldSpec("last4", "Card Last4"),
    FieldSpec("auth", "Auth Code"),
    FieldSpec("invoiceNo", "Invoice #"),
    FieldSpec("invoiceStatus", "Invoice Status"),
    FieldSpec("invoiceUrl", "Invoice PDF URL"),
)

FIELDS_BY_KEY: Dict[str, FieldSpec] = {f.key: f for f in LEDGER_FIELDS}

# Campos que se llenan automáticamente y no se editan a mano
TIMESTAMP_FIELDS = ("checkInTime", "checkOutTime", "cleanedTime")

# Reparación de encabezados
HEADER_RENAMES = {"Quoted Nights": "Number of Night(s)"}
HEADERS_FOR_BLANKS = ("Tax Rate", "Guest Email", "Payment Type", "HK Done", "CleanedTime")
CONDITIONAL_RENAMES = (("VOID", "Invoice Status"), ("Name", "Full Name"))


def _find_column(headers: List[str], spec: FieldSpec) -> Optional[int]:
    # 1) exacto
    if spec.canonical in headers:
        return headers.index(spec.canonical) + 1

    # 2) sin distinguir mayúsculas
    lowered = [h.lower() for h in headers]
    canonical = spec.canonical.lower()
    if canonical in lowered:
        return lowered.index(canonical) + 1

    # 3) alias conocidos
    for alias in spec.aliases:
        if alias.lower() in lowered:
            return lowered.index(alias.lower()) + 1
    return None


@dataclass
class LedgerSchema:
    """Mapa campo lógico -> columna (1-based) o None si no existe"""

    columns: Dict[str, Optional[int]] = field(default_factory=dict)

    def col(self, key: str) -> Optional[int]:
        if key not in FIELDS_BY_KEY:
            raise KeyError(f"Unknown ledger field: {key}")
        return self.columns.get(key)

    def has(self, *keys: str) -> bool:
        return all(self.col(k) is not None for k in keys)

    def missing(self, *keys: str) -> List[str]:
        return [FIELDS_BY_KEY[k].canonical for k in keys if self.col(k) is None]

    def missing_required(self) -> List[str]:
        return [f.canonical for f in LEDGER_FIELDS if f.required and self.columns.get(f.key) is None]

    def require(self, *keys: str) -> None:
        missing = self.missing(*keys)
        if missing:
            raise SchemaMissing(missing)

    def key_for_column(self, column: int) -> Optional[str]:
        for key, col in self.columns.items():
            if col == column:
                return key
        return None


def resolve_schema(headers: Iterable) -> LedgerSchema:
    """Resuelve todos los campos lógicos contra la fila de encabezados"""
    cleaned = [("" if h is None else str(h)).strip() for h in headers]
    return LedgerSchema(columns={spec.key: _find_column(cleaned, spec) for spec in LEDGER_FIELDS})


def resolve_column_reference(schema: LedgerSchema, headers: List[str], reference) -> Optional[int]:
    """
    Acepta un número de columna, una clave lógica ("checkIn") o un título de
    encabezado ("CheckIn", "check out") y devuelve la columna 1-based.
    Columnas fuera del ancho de los encabezados no existen (None).
    """
    if isinstance(reference, int):
        return reference if 1 <= reference <= len(headers) else None

    text = str(reference).strip()
    if text.isdigit():
        number = int(text)
        return number if 1 <= number <= len(headers) else None
    if text in FIELDS_BY_KEY:
        return schema.col(text)

    spec = FieldSpec("_adhoc", text)
    column = _find_column(headers, spec)
    if column is not None:
        return column
    for candidate in LEDGER_FIELDS:
        names = (candidate.canonical,) + candidate.aliases
        if text.lower() in (n.lower() for n in names):
            return schema.col(candidate.key)
    return None


def repair_headers(sheet, usuario: str = "system") -> List[Tuple[int, str, str]]:
    """
    Repara encabezados rotos sin mover columnas.

    - "Quoted Nights" -> "Number of Night(s)"
    - celdas de encabezado en blanco reciben encabezados faltantes conocidos
    - "VOID" -> "Invoice Status" y "Name" -> "Full Name" si falta el canónico

    Es idempotente: una segunda ejecución no cambia nada.

    Returns:
        Lista de (columna, anterior, nuevo) con los cambios aplicados
    """
    changes: List[Tuple[int, str, str]] = []

    def _rename(column: int, new_title: str):
        old_title = headers[column - 1]
        sheet.set_header(column, new_title)
        headers[column - 1] = new_title
        changes.append((column, old_title, new_title))

    headers = sheet.header_row()

    for column, title in enumerate(list(headers), start=1):
        if title in HEADER_RENAMES and HEADER_RENAMES[title] not in headers:
            _rename(column, HEADER_RENAMES[title])

    for title in HEADERS_FOR_BLANKS:
        if title in headers:
            continue
        if "" not in headers:
            break
        _rename(headers.index("") + 1, title)

    for old_title, new_title in CONDITIONAL_RENAMES:
        if old_title in headers and new_title not in headers:
            _rename(headers.index(old_title) + 1, new_title)

    if changes:
        detalle = "; ".join(f"col {c}: '{o}' -> '{n}'" for c, o, n in changes)
        log_event("schema", usuario, "Reparar encabezados", detalle)
    return changes
