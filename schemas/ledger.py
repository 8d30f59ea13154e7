from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field


# ===== EDICIONES =====

class CellEdit(BaseModel):
    row: int = Field(..., ge=1)
    column: Union[int, str]  # número, clave lógica ("checkIn") o título ("CheckIn")
    value: Any = None
    usuario: str = "frontdesk"


class WarningOut(BaseModel):
    code: str
    message: str
    severity: str = "warning"


class RoomStateOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)
    room: str
    status: str
    display_status: str
    guest: str = ""
    check_in_time: Any = ""
    check_out_time: Any = ""
    source_row: Optional[int] = None
    cleaned_ready: bool = False
    override: Optional[str] = None


class InvoiceOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)
    row: int
    invoice_no: str = ""
    status: str = ""
    document_ref: str = ""
    generated: bool = False
    notified: bool = False
    skipped_reason: Optional[str] = None


class EditOutcomeOut(BaseModel):
    row: int
    field: Optional[str] = None
    accepted: bool
    transition: Optional[str] = None
    room: str = ""
    room_state: Optional[RoomStateOut] = None
    invoice: Optional[InvoiceOut] = None
    invoice_no: Optional[str] = None
    corrections: Dict[str, Any] = {}
    warnings: List[WarningOut] = []
    error_code: Optional[str] = None
    message: Optional[str] = None


# ===== FILAS =====

class RowCreate(BaseModel):
    # {título de encabezado o clave lógica: valor}
    values: Dict[str, Any] = {}
    usuario: str = "frontdesk"


class RowOut(BaseModel):
    row: int
    stage: str
    historical: bool = False
    values: Dict[str, Any]


class HeaderChange(BaseModel):
    column: int
    old: str
    new: str


class GuestHistoryEntry(BaseModel):
    row: int
    date: str = ""
    room: str
    guest: str
    nights: int
    total: float
    checked_in: bool
    checked_out: bool
    invoice_no: str = ""


# ===== INVOICES / MASIVOS =====

class InvoiceRequest(BaseModel):
    force: bool = True
    usuario: str = "frontdesk"


class BulkRowsRequest(BaseModel):
    rows: List[int] = Field(..., min_length=1)
    usuario: str = "frontdesk"


class BulkTaxRateRequest(BulkRowsRequest):
    tax_rate: Union[float, str]  # 0.13, "13%" o 13


class BulkResultOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)
    processed: List[int] = []
    skipped: List[int] = []
    failures: Dict[int, str] = {}
    invoices: Dict[int, str] = {}


class InvoiceSequenceOut(BaseModel):
    counter: int
    next_invoice_no: str


# ===== HABITACIONES =====

class RoomDetailOut(RoomStateOut):
    rows: List[int] = []
    conflicts: List[int] = []


class PendingHousekeepingOut(BaseModel):
    row: int
    room: str
    guest: str = ""
    check_out_time: str = ""


class RoomOverrideUpdate(BaseModel):
    status: str = Field(..., min_length=1)
    usuario: str = "frontdesk"
