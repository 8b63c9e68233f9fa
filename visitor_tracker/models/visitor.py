from typing import List, Optional

from pydantic import BaseModel

from .session_record import SessionRecord


class VisitorAggregate(BaseModel):
    """
    Historial de un visitante identificado por su visitor_id.
    Solo el motor de ingesta lo modifica; la lista de sesiones nunca está vacía.
    """

    visitor_id: str
    fingerprint: Optional[str] = None
    visits: int = 1
    first_seen: str
    last_seen: str
    sessions: List[SessionRecord]

    @property
    def last_session(self) -> SessionRecord:
        return self.sessions[-1]

    @property
    def is_returning(self) -> bool:
        return self.visits > 1
