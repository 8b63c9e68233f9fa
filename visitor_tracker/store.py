# Almacenamiento en memoria de visitantes y sesiones.
#
# ESTRATEGIA DE ALMACENAMIENTO:
# - Un único VisitorStore por proceso, creado al iniciar la app (main.py)
#   y guardado en app.state.store.
# - Los routers lo reciben con la dependencia get_store (Depends).
# - No hay persistencia: al reiniciar el proceso se pierde todo.

import threading
from contextlib import contextmanager
from typing import Dict, Iterator, List, Optional

from fastapi import Request

from .models.session_record import SessionRecord
from .models.visitor import VisitorAggregate


class VisitorStore:
    """
    Mapa visitor_id -> VisitorAggregate más el log global de sesiones
    (append-only, en orden de llegada).
    """

    def __init__(self):
        self._visitors: Dict[str, VisitorAggregate] = {}
        self._sessions: List[SessionRecord] = []
        self._lock = threading.RLock()

    @contextmanager
    def transaction(self) -> Iterator["VisitorStore"]:
        """
        Bloquea el store mientras se lee la última sesión, se calcula el diff
        y se agrega la nueva sesión, para que la secuencia sea atómica.
        """
        with self._lock:
            yield self

    def get_visitor(self, visitor_id: str) -> Optional[VisitorAggregate]:
        with self._lock:
            return self._visitors.get(visitor_id)

    def last_session(self, visitor_id: str) -> Optional[SessionRecord]:
        with self._lock:
            visitor = self._visitors.get(visitor_id)
            return visitor.last_session if visitor else None

    def add_visitor(self, record: SessionRecord) -> VisitorAggregate:
        """Crea el agregado de un visitante nuevo y registra su primera sesión."""
        with self._lock:
            if record.visitor_id in self._visitors:
                raise ValueError(f"El visitante {record.visitor_id} ya existe")
            visitor = VisitorAggregate(
                visitor_id=record.visitor_id,
                fingerprint=record.fingerprint,
                visits=1,
                first_seen=record.first_seen,
                last_seen=record.first_seen,
                sessions=[record],
            )
            self._visitors[record.visitor_id] = visitor
            self._sessions.append(record)
            return visitor

    def append_session(self, record: SessionRecord) -> VisitorAggregate:
        """Registra una nueva sesión de un visitante existente."""
        with self._lock:
            visitor = self._visitors[record.visitor_id]
            visitor.visits += 1
            visitor.last_seen = record.first_seen
            visitor.sessions.append(record)
            self._sessions.append(record)
            return visitor

    def recent_sessions(self, limit: int) -> List[SessionRecord]:
        """Últimas `limit` sesiones, la más reciente primero."""
        with self._lock:
            if limit <= 0:
                return []
            return list(reversed(self._sessions[-limit:]))

    def sessions(self) -> List[SessionRecord]:
        with self._lock:
            return list(self._sessions)

    def visitors(self) -> List[VisitorAggregate]:
        with self._lock:
            return list(self._visitors.values())

    @property
    def total_sessions(self) -> int:
        with self._lock:
            return len(self._sessions)

    @property
    def unique_visitors(self) -> int:
        with self._lock:
            return len(self._visitors)


def get_store(request: Request) -> VisitorStore:
    """
    Dependencia para inyectar el store del proceso en los endpoints de FastAPI.
    """
    return request.app.state.store
