"""
Archivo de inicialización del paquete models.
Expone las tablas SQLAlchemy para que Base.metadata las detecte al
importar 'models'. El ledger en sí vive en la planilla (models.ledger).
"""

# Contadores persistidos (numeración de invoices)
from .counter import PersistedCounter

__all__ = ["PersistedCounter"]
