from datetime import datetime
import pytz

from config import HOTEL_TIMEZONE

# Centralized Timezone Configuration
HOTEL_TZ = pytz.timezone(HOTEL_TIMEZONE)

TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S"


def get_hotel_now() -> datetime:
    """Returns current wall-clock time in Hotel Timezone (naive, second precision)"""
    return datetime.now(HOTEL_TZ).replace(tzinfo=None, microsecond=0)


def format_hotel_time(value, fmt: str = "%m/%d/%Y %I:%M %p") -> str:
    """Formatea un timestamp de la planilla; devuelve '' si no hay valor"""
    if value in (None, ""):
        return ""
    if isinstance(value, datetime):
        return value.strftime(fmt)
    text = str(value).strip()
    try:
        return datetime.strptime(text, TIMESTAMP_FORMAT).strftime(fmt)
    except ValueError:
        return text


def get_operational_date() -> str:
    """Returns today's date formatted as YYYY-MM-DD in Hotel Timezone"""
    return get_hotel_now().strftime("%Y-%m-%d")
