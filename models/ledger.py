"""
Tabla del ledger de recepción.

La planilla es la única fuente de datos: fila 1 = encabezados, filas 2..N =
registros de reserva en orden estricto de inserción. Las posiciones son
1-based, igual que en la planilla original.
"""

import csv
from datetime import datetime
from pathlib import Path
from typing import Any, Iterable, List, Optional, Set

from utils.timezone import TIMESTAMP_FORMAT

HEADER_ROW = 1
FIRST_DATA_ROW = 2


def _cell_to_text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "Yes" if value else ""
    if isinstance(value, datetime):
        return value.strftime(TIMESTAMP_FORMAT)
    return str(value)


class LedgerSheet:
    """Una hoja con encabezados en la fila 1"""

    def __init__(self, name: str, headers: Optional[Iterable[Any]] = None, rows: Optional[Iterable[Iterable[Any]]] = None):
        self.name = name
        self._rows: List[List[Any]] = [list(headers or [])]
        for values in rows or []:
            self._rows.append(list(values))
        # Filas históricas: marca visual, no altera la derivación
        self.historical_rows: Set[int] = set()

    # ------------------------------------------------------------------
    # Dimensiones
    # ------------------------------------------------------------------
    @property
    def last_row(self) -> int:
        return len(self._rows)

    @property
    def last_column(self) -> int:
        return max((len(r) for r in self._rows), default=0)

    def data_rows(self) -> range:
        return range(FIRST_DATA_ROW, self.last_row + 1)

    def has_row(self, row: int) -> bool:
        return FIRST_DATA_ROW <= row <= self.last_row

    # ------------------------------------------------------------------
    # Celdas
    # ------------------------------------------------------------------
    def header_row(self) -> List[str]:
        headers = self._rows[0] if self._rows else []
        return [_cell_to_text(h).strip() for h in headers]

    def set_header(self, column: int, title: str) -> None:
        self.set_value(HEADER_ROW, column, title)

    def get_value(self, row: int, column: int) -> Any:
        if row < 1 or column < 1 or row > len(self._rows):
            return ""
        values = self._rows[row - 1]
        if column > len(values):
            return ""
        value = values[column - 1]
        return "" if value is None else value

    def set_value(self, row: int, column: int, value: Any) -> None:
        if row < 1 or column < 1:
            raise IndexError(f"Invalid cell ({row}, {column})")
        while len(self._rows) < row:
            self._rows.append([])
        values = self._rows[row - 1]
        if len(values) < column:
            values.extend([""] * (column - len(values)))
        values[column - 1] = "" if value is None else value

    def row_values(self, row: int) -> List[Any]:
        width = self.last_column
        values = list(self._rows[row - 1]) if 1 <= row <= len(self._rows) else []
        return values + [""] * (width - len(values))

    def append_row(self, values: Iterable[Any]) -> int:
        self._rows.append(list(values))
        return len(self._rows)

    # ------------------------------------------------------------------
    # Filas históricas
    # ------------------------------------------------------------------
    def mark_historical(self, row: int) -> bool:
        """Marca la fila como histórica. Devuelve False si ya lo estaba."""
        if row in self.historical_rows:
            return False
        self.historical_rows.add(row)
        return True

    def is_historical(self, row: int) -> bool:
        return row in self.historical_rows

    # ------------------------------------------------------------------
    # CSV
    # ------------------------------------------------------------------
    @classmethod
    def load_csv(cls, name: str, path: Path) -> "LedgerSheet":
        with open(path, newline="", encoding="utf-8") as fh:
            rows = list(csv.reader(fh))
        if not rows:
            return cls(name)
        return cls(name, headers=rows[0], rows=rows[1:])

    def save_csv(self, path: Path) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = path.with_suffix(path.suffix + ".tmp")
        with open(tmp_path, "w", newline="", encoding="utf-8") as fh:
            writer = csv.writer(fh)
            for row in range(1, self.last_row + 1):
                writer.writerow([_cell_to_text(v) for v in self.row_values(row)])
        tmp_path.replace(path)


class LedgerWorkbook:
    """FrontDesk_Log + Rooms_Master (opcional)"""

    def __init__(self, frontdesk: LedgerSheet, rooms_master: Optional[LedgerSheet] = None):
        self.frontdesk = frontdesk
        self.rooms_master = rooms_master
