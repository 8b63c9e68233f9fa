import re
from collections import Counter
from typing import List

from ..models.session_record import SessionRecord
from ..schemas.stats_schema import VisitorStats
from ..store import VisitorStore
from ..utils import NOT_AVAILABLE

BROWSER_PATTERN = re.compile(r"(Chrome|Firefox|Safari|Edge|Opera)")


def detect_browser(user_agent: str) -> str:
    """Primer navegador reconocido que aparece en el user agent, o "Other"."""
    match = BROWSER_PATTERN.search(user_agent or "")
    return match.group(0) if match else "Other"


def format_return_rate(returning: int, unique: int) -> str:
    rate = (returning / unique) * 100 if unique > 0 else 0.0
    return f"{rate:.1f}%"


def recent_sessions(store: VisitorStore, limit: int) -> List[SessionRecord]:
    return store.recent_sessions(limit)


def compute_stats(store: VisitorStore) -> VisitorStats:
    """
    Recorre el log global una sola vez y arma las tablas de frecuencia.
    """
    with store.transaction():
        sessions = store.sessions()
        visitors = store.visitors()
        unique_visitors = len(visitors)
        returning_visitors = sum(1 for visitor in visitors if visitor.visits > 1)

    countries, cities, browsers = Counter(), Counter(), Counter()
    platforms, devices, timezones, languages = Counter(), Counter(), Counter(), Counter()

    for session in sessions:
        if session.country:
            countries[session.country] += 1

        if session.city and session.city != NOT_AVAILABLE:
            cities[f"{session.city}, {session.corrected_region}"] += 1

        browsers[detect_browser(session.user_agent)] += 1
        platforms[session.platform] += 1

        if session.audio_signature and session.audio_signature != NOT_AVAILABLE:
            devices[session.audio_signature] += 1

        if session.timezone:
            timezones[session.timezone] += 1

        if session.language:
            languages[session.language] += 1

    return VisitorStats(
        unique_visitors=unique_visitors,
        total_sessions=len(sessions),
        returning_visitors=returning_visitors,
        return_rate=format_return_rate(returning_visitors, unique_visitors),
        unique_devices=len(devices),
        countries=dict(countries),
        cities=dict(cities),
        browsers=dict(browsers),
        platforms=dict(platforms),
        devices=dict(devices),
        timezones=dict(timezones),
        languages=dict(languages),
    )
