"""
Eventos de dominio del ledger y despacho a reacciones con nombre.

Las correcciones sobre otras filas (limpiar "Cleaned - ReadyFor Rent" viejos,
marcar filas históricas) se registran como reacciones a estos eventos en
lugar de mezclarse dentro del manejador de ediciones.
"""

from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Tuple, Type

from utils.logging_utils import log_error

ROOM_CHECKED_IN = "ledger.room.checked_in"
ROOM_CHECKED_OUT = "ledger.room.checked_out"
ROOM_HOUSEKEEPING_DONE = "ledger.room.housekeeping_done"


@dataclass(frozen=True)
class RoomCheckedIn:
    room: str
    row: int
    guest: str = ""
    usuario: str = "system"
    event_type: str = ROOM_CHECKED_IN


@dataclass(frozen=True)
class RoomCheckedOut:
    room: str
    row: int
    guest: str = ""
    usuario: str = "system"
    event_type: str = ROOM_CHECKED_OUT


@dataclass(frozen=True)
class RoomHousekeepingDone:
    room: str
    row: int
    usuario: str = "system"
    event_type: str = ROOM_HOUSEKEEPING_DONE


@dataclass
class ReactionContext:
    """Lo que necesita una reacción para operar sobre el ledger"""
    sheet: Any
    schema: Any
    engine: Any


@dataclass
class DispatchResult:
    results: Dict[str, Any] = field(default_factory=dict)
    failures: List[Tuple[str, Exception]] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.failures


Reaction = Callable[[Any, ReactionContext], Any]


class EventDispatcher:
    """Registro de reacciones por tipo de evento, en orden de suscripción"""

    def __init__(self):
        self._reactions: Dict[Type, List[Tuple[str, Reaction]]] = {}

    def subscribe(self, event_type: Type, name: str, reaction: Reaction) -> None:
        reactions = self._reactions.setdefault(event_type, [])
        if any(existing == name for existing, _ in reactions):
            raise ValueError(f"Reaction '{name}' already subscribed to {event_type.__name__}")
        reactions.append((name, reaction))

    def unsubscribe(self, event_type: Type, name: str) -> None:
        reactions = self._reactions.get(event_type, [])
        self._reactions[event_type] = [(n, r) for n, r in reactions if n != name]

    def reaction_names(self, event_type: Type) -> List[str]:
        return [name for name, _ in self._reactions.get(event_type, [])]

    def dispatch(self, event, context: ReactionContext) -> DispatchResult:
        """
        Ejecuta todas las reacciones del evento. Una reacción que falla se
        registra y se reporta, pero no corta las demás ni la edición.
        """
        result = DispatchResult()
        for name, reaction in self._reactions.get(type(event), []):
            try:
                result.results[name] = reaction(event, context)
            except Exception as e:
                log_error(
                    "events",
                    f"Reacción '{name}' falló",
                    e,
                    event=event.event_type,
                    room=getattr(event, "room", None),
                    row=getattr(event, "row", None),
                )
                result.failures.append((name, e))
        return result
