"""
Incident-to-Service Matching
============================

Upstream scenario generation names affected services in free text, so
matching is deliberately permissive. Strategies are pure predicates tried
in order; the first hit wins.
"""

import re
from typing import Callable, Dict, Iterable, List, Optional, Tuple

from simengine.shared.domain import Incident, Service

Synonyms = Dict[str, List[str]]
MatchStrategy = Callable[[Service, Incident, Synonyms], bool]


def _reference(incident: Incident) -> str:
    return (incident.affected_service_name or "").strip().lower()


def match_by_id(service: Service, incident: Incident, synonyms: Synonyms) -> bool:
    return incident.affected_service_id is not None and incident.affected_service_id == service.id


def match_by_exact_name(service: Service, incident: Incident, synonyms: Synonyms) -> bool:
    reference = _reference(incident)
    return bool(reference) and reference == service.name.strip().lower()


def _mentions(word: str, text: str) -> bool:
    return re.search(rf"\b{re.escape(word)}\b", text) is not None


def match_by_keyword(service: Service, incident: Incident, synonyms: Synonyms) -> bool:
    """A keyword in the service name, one of its synonyms as a whole word in the incident text."""
    name = service.name.lower()
    text = " ".join((
        _reference(incident),
        incident.title.lower(),
        (incident.description or "").lower(),
    ))
    for keyword, words in synonyms.items():
        if keyword in name and any(_mentions(word, text) for word in words):
            return True
    return False


def match_by_substring(service: Service, incident: Incident, synonyms: Synonyms) -> bool:
    reference = _reference(incident)
    if not reference:
        return False
    name = service.name.lower()
    return reference in name or name in reference


def match_by_text(service: Service, incident: Incident, synonyms: Synonyms) -> bool:
    name = service.name.lower()
    if not name:
        return False
    return name in incident.title.lower() or name in (incident.description or "").lower()


MATCH_STRATEGIES: List[Tuple[str, MatchStrategy]] = [
    ("id", match_by_id),
    ("exact_name", match_by_exact_name),
    ("keyword", match_by_keyword),
    ("substring", match_by_substring),
    ("text", match_by_text),
]


def match_reason(service: Service, incident: Incident, synonyms: Synonyms) -> Optional[str]:
    """Name of the first strategy linking the incident to the service, if any."""
    for name, strategy in MATCH_STRATEGIES:
        if strategy(service, incident, synonyms):
            return name
    return None


def matching_incidents(
    service: Service,
    incidents: Iterable[Incident],
    synonyms: Synonyms
) -> List[Incident]:
    """Open incidents of the service's game that affect it."""
    return [
        i for i in incidents
        if i.is_open and i.game_id == service.game_id
        and match_reason(service, i, synonyms) is not None
    ]
