"""
Configuración del ledger de recepción (FrontDesk_Log)
"""
import os

from dotenv import load_dotenv

load_dotenv()

# Ledger Storage
LEDGER_DIR = os.getenv("LEDGER_DIR", "ledger_data")
LEDGER_SHEET = os.getenv("LEDGER_SHEET", "FrontDesk_Log")
ROOMS_SHEET = os.getenv("ROOMS_SHEET", "Rooms_Master")

# Counter Storage
DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///motel_ledger.db")

# Timezone
HOTEL_TIMEZONE = os.getenv("HOTEL_TIMEZONE", "America/New_York")

# Billing
DEFAULT_TAX_RATE = float(os.getenv("DEFAULT_TAX_RATE", "0.13"))
PAYMENT_TYPES = ["Cash", "Credit Card", "Debit Card", "Check", "Other"]

# Invoice Sequence
INVOICE_PREFIX = os.getenv("INVOICE_PREFIX", "INV-")
INVOICE_PAD_WIDTH = int(os.getenv("INVOICE_PAD_WIDTH", "6"))
INVOICE_COUNTER_NAME = "INVOICE_SEQ"
INVOICE_LOCK_TIMEOUT_SECONDS = float(os.getenv("INVOICE_LOCK_TIMEOUT_SECONDS", "15"))
INVOICE_OUTPUT_DIR = os.getenv("INVOICE_OUTPUT_DIR", os.path.join("PMS", "Invoices"))

# Housekeeping texts (tal cual aparecen en la columna HK Status)
HK_READY_TEXT = "Ready for Cleaning"
HK_DONE_TEXT = "Cleaned - ReadyFor Rent"

# Invoice Status values
INVOICE_STATUS_PAID = "PAID"
INVOICE_STATUS_VOID = "VOID"

# Notifications
NOTIFY_ENABLED = os.getenv("NOTIFY_ENABLED", "true").lower() == "true"

# Rate limiting
RATE_LIMIT_DEFAULT = os.getenv("RATE_LIMIT_DEFAULT", "120/minute")
RATE_LIMIT_ENABLED = os.getenv("RATE_LIMIT_ENABLED", "true").lower() == "true"
RATE_LIMIT_STORAGE = os.getenv("REDIS_URL", "memory://")

MOTEL_INFO = {
    "name": os.getenv("MOTEL_NAME", "Lee High Inn Motel"),
    "addr1": os.getenv("MOTEL_ADDR1", "9865 Fairfax Blvd"),
    "addr2": os.getenv("MOTEL_ADDR2", "Fairfax, VA 22030"),
    "phone": os.getenv("MOTEL_PHONE", "703-975-5067"),
    "email": os.getenv("MOTEL_EMAIL", ""),
}

# Mensajes para el usuario final
USER_MESSAGES = {
    "total_locked": "Cannot modify Total With Tax after checkout. Please void the invoice first if correction is needed.",
    "timestamp_locked": "This column is protected and cannot be edited. Timestamps are set automatically.",
    "lock_unavailable": "Invoice numbering is busy. Please try again in a moment.",
}
