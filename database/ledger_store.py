"""
Persistencia del ledger en CSV (una hoja por archivo dentro de LEDGER_DIR).

Las marcas de filas históricas no se guardan: se recalculan al cargar.
"""

from pathlib import Path
from typing import Optional

from config import LEDGER_DIR, LEDGER_SHEET, ROOMS_SHEET
from models.ledger import LedgerSheet, LedgerWorkbook
from utils.logging_utils import log_event
from utils.room_state_engine import RoomStateEngine
from utils.schema_resolver import LEDGER_FIELDS, resolve_schema

DEFAULT_HEADERS = [spec.canonical for spec in LEDGER_FIELDS]


class LedgerStore:
    def __init__(self, base_dir: str = LEDGER_DIR, frontdesk_name: str = LEDGER_SHEET, rooms_name: str = ROOMS_SHEET):
        self.base_dir = Path(base_dir)
        self.frontdesk_name = frontdesk_name
        self.rooms_name = rooms_name
        self._workbook: Optional[LedgerWorkbook] = None

    @property
    def frontdesk_path(self) -> Path:
        return self.base_dir / f"{self.frontdesk_name}.csv"

    @property
    def rooms_path(self) -> Path:
        return self.base_dir / f"{self.rooms_name}.csv"

    def load(self) -> LedgerWorkbook:
        if self.frontdesk_path.exists():
            frontdesk = LedgerSheet.load_csv(self.frontdesk_name, self.frontdesk_path)
        else:
            frontdesk = LedgerSheet(self.frontdesk_name, headers=DEFAULT_HEADERS)
            log_event("ledger", "system", "Ledger nuevo", f"path={self.frontdesk_path}")

        rooms_master = None
        if self.rooms_path.exists():
            rooms_master = LedgerSheet.load_csv(self.rooms_name, self.rooms_path)

        schema = resolve_schema(frontdesk.header_row())
        RoomStateEngine(frontdesk, schema).refresh_historical_marks()

        self._workbook = LedgerWorkbook(frontdesk, rooms_master)
        return self._workbook

    def workbook(self) -> LedgerWorkbook:
        if self._workbook is None:
            return self.load()
        return self._workbook

    def save(self) -> None:
        if self._workbook is None:
            return
        self._workbook.frontdesk.save_csv(self.frontdesk_path)
        if self._workbook.rooms_master is not None:
            self._workbook.rooms_master.save_csv(self.rooms_path)


_store: Optional[LedgerStore] = None


def get_store() -> LedgerStore:
    """Dependencia FastAPI: store único del proceso"""
    global _store
    if _store is None:
        _store = LedgerStore()
    return _store
