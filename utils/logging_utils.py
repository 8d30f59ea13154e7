import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path

_LOGGER_NAME = "motel_ledger"
_LOG_FILE = Path("ledger_logs.txt")


def _configure_logger() -> logging.Logger:
    logger = logging.getLogger(_LOGGER_NAME)
    if logger.handlers:
        return logger

    logger.setLevel(logging.INFO)
    logger.propagate = False

    try:
        handler = RotatingFileHandler(_LOG_FILE, maxBytes=1_000_000, backupCount=3, encoding="utf-8")
    except OSError:
        handler = logging.StreamHandler()

    formatter = logging.Formatter("%(asctime)s | %(levelname)s | %(message)s")
    handler.setFormatter(formatter)
    logger.addHandler(handler)
    return logger


_logger = _configure_logger()


def _format_context(context: dict) -> str:
    return ", ".join(f"{k}={v}" for k, v in context.items() if v is not None)


def log_event(area: str, usuario: str, accion: str, detalle: str = "") -> None:
    area_label = area.upper()
    message = f"{area_label} | Usuario: {usuario} | Accion: {accion}"
    if detalle:
        message += f" | Detalle: {detalle}"
    try:
        _logger.info(message)
    except Exception:
        # Si falla el logging no hay a dónde reportarlo
        pass


def log_error(area: str, accion: str, error: Exception = None, **context) -> None:
    """Registra un error con contexto suficiente (room, row, operación) para diagnosticarlo después"""
    message = f"{area.upper()} | Accion: {accion}"
    if error is not None:
        message += f" | Error: {type(error).__name__}: {error}"
    detalle = _format_context(context)
    if detalle:
        message += f" | Contexto: {detalle}"
    try:
        _logger.error(message)
    except Exception:
        pass


def log_debug(area: str, accion: str, **context) -> None:
    message = f"{area.upper()} | Accion: {accion}"
    detalle = _format_context(context)
    if detalle:
        message += f" | Contexto: {detalle}"
    try:
        _logger.debug(message)
    except Exception:
        pass
