"""
Errores del dominio del ledger.

Cada error lleva un `code` estable que se usa en los EditOutcome y en las
respuestas HTTP.
"""
from typing import Optional


class LedgerError(RuntimeError):
    """Base de todos los errores del ledger"""

    code = "LEDGER_ERROR"

    def __init__(self, message: str, row: Optional[int] = None, room: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.row = row
        self.room = room


class SchemaMissing(LedgerError):
    """Falta una columna requerida en la fila de encabezados"""

    code = "SCHEMA_MISSING"

    def __init__(self, fields, row: Optional[int] = None):
        self.fields = list(fields)
        super().__init__(f"Missing ledger columns: {', '.join(self.fields)}", row=row)


class InvalidNumericInput(LedgerError):
    """Valor monetario / tasa no numérico (se coerciona, sólo se reporta)"""

    code = "INVALID_NUMERIC_INPUT"


class ProtectedFieldEdit(LedgerError):
    """Edición de un campo automático; la celda se revierte"""

    code = "PROTECTED_FIELD_EDIT"

    def __init__(self, field: str, message: str, row: Optional[int] = None, room: Optional[str] = None):
        super().__init__(message, row=row, room=room)
        self.field = field


class LockUnavailable(LedgerError):
    """No se pudo tomar el lock del contador de invoices dentro del tiempo permitido"""

    code = "LOCK_UNAVAILABLE"

    def __init__(self, lock_name: str, timeout: float):
        super().__init__(f"Lock '{lock_name}' not acquired within {timeout:g}s")
        self.lock_name = lock_name
        self.timeout = timeout
