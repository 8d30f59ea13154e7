"""
Invoice Sequence Allocator - numeración global de invoices

Contador persistido + lock con nombre. La sección crítica es una lectura y
una escritura; si el lock no se obtiene dentro del tiempo límite se falla
con LockUnavailable (nunca se saltea ni se duplica un número).
"""

import threading
from typing import Callable, Dict, Optional

from sqlalchemy.orm import Session

from config import (
    INVOICE_COUNTER_NAME,
    INVOICE_LOCK_TIMEOUT_SECONDS,
    INVOICE_PAD_WIDTH,
    INVOICE_PREFIX,
)
from database.conexion import Base, SessionLocal, engine as default_engine
from models.counter import PersistedCounter
from utils.ledger_errors import LockUnavailable
from utils.logging_utils import log_error, log_event

_LOCKS: Dict[str, threading.Lock] = {}
_LOCKS_GUARD = threading.Lock()


def get_named_lock(name: str) -> threading.Lock:
    """Un único lock por nombre dentro del proceso"""
    with _LOCKS_GUARD:
        lock = _LOCKS.get(name)
        if lock is None:
            lock = threading.Lock()
            _LOCKS[name] = lock
        return lock


def init_counter_store(bind=None) -> None:
    """Crea la tabla del contador si no existe"""
    Base.metadata.create_all(bind=bind or default_engine, tables=[PersistedCounter.__table__])


class CounterStore:
    """Contadores persistidos vía SQLAlchemy"""

    def __init__(self, session_factory: Callable[[], Session] = SessionLocal):
        self.session_factory = session_factory

    def get(self, name: str) -> int:
        db = self.session_factory()
        try:
            counter = db.query(PersistedCounter).filter(PersistedCounter.name == name).first()
            return counter.value if counter else 0
        finally:
            db.close()

    def increment_and_get(self, name: str) -> int:
        db = self.session_factory()
        try:
            counter = (
                db.query(PersistedCounter)
                .filter(PersistedCounter.name == name)
                .with_for_update()
                .first()
            )
            if counter is None:
                counter = PersistedCounter(name=name, value=0)
                db.add(counter)
            next_value = (counter.value or 0) + 1
            counter.value = next_value
            db.commit()
            return next_value
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()


class InvoiceSequenceAllocator:
    """Genera INV-000123, único y estrictamente creciente en todo el ledger"""

    def __init__(
        self,
        store: Optional[CounterStore] = None,
        counter_name: str = INVOICE_COUNTER_NAME,
        prefix: str = INVOICE_PREFIX,
        pad_width: int = INVOICE_PAD_WIDTH,
        lock_timeout: float = INVOICE_LOCK_TIMEOUT_SECONDS,
    ):
        self.store = store or CounterStore()
        self.counter_name = counter_name
        self.prefix = prefix
        self.pad_width = pad_width
        self.lock_timeout = lock_timeout

    def format(self, value: int) -> str:
        return f"{self.prefix}{str(value).zfill(self.pad_width)}"

    def peek(self) -> int:
        return self.store.get(self.counter_name)

    def next_invoice_number(self) -> str:
        lock = get_named_lock(self.counter_name)
        if not lock.acquire(timeout=self.lock_timeout):
            error = LockUnavailable(self.counter_name, self.lock_timeout)
            log_error("invoice", "Lock de numeración no disponible", error, counter=self.counter_name)
            raise error
        try:
            value = self.store.increment_and_get(self.counter_name)
        finally:
            lock.release()

        invoice_no = self.format(value)
        log_event("invoice", "system", "Número de invoice asignado", invoice_no)
        return invoice_no
