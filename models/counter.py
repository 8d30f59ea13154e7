from datetime import datetime

from sqlalchemy import Column, DateTime, Integer, String

from database.conexion import Base


class PersistedCounter(Base):
    """Contador con nombre que sobrevive reinicios (ej: INVOICE_SEQ)"""
    __tablename__ = "persisted_counters"

    name = Column(String(64), primary_key=True)
    value = Column(Integer, nullable=False, default=0)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
