from .session_record import SessionRecord
from .visitor import VisitorAggregate

__all__ = [
    "SessionRecord",
    "VisitorAggregate",
]
