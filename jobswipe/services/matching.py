"""
Distance and match-score helpers for the swipe deck.

Pure functions: no database, no I/O. Records are read with getattr so ORM
objects and simple namespaces both work.
"""
import math
from typing import Any, Iterable, List, Optional, Dict

EARTH_RADIUS_KM = 6371.0


def distance_km(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Great-circle distance between two points (haversine)."""
    d_lat = math.radians(lat2 - lat1)
    d_lon = math.radians(lon2 - lon1)
    a = (
        math.sin(d_lat / 2) ** 2
        + math.cos(math.radians(lat1)) * math.cos(math.radians(lat2)) * math.sin(d_lon / 2) ** 2
    )
    return EARTH_RADIUS_KM * 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))


def _as_list(value: Any) -> List[Any]:
    """Fields may hold a single value, a list or nothing."""
    if value is None or value == "":
        return []
    if isinstance(value, (list, tuple, set)):
        return [v for v in value if v]
    return [value]


def _lower(value: Any) -> Any:
    return value.lower() if isinstance(value, str) else value


def calculate_match_score(
    searcher: Any,
    candidate: Any,
    filters: Optional[Dict[str, Any]] = None,
    candidate_distance_km: Optional[float] = None,
) -> int:
    """
    Heuristic score of a candidate (job or profile) for the searching party.

    One point each for: employment type, shared skill, within radius,
    language, industry, available now, desired salary inside the range.
    Criteria the filters leave open count as satisfied.
    """
    filters = filters or {}
    score = 0

    # Employment type
    wanted_types = _as_list(filters.get("employment_types"))
    if not wanted_types:
        score += 1
    else:
        candidate_types = _as_list(getattr(candidate, "employment_type", None)) + _as_list(
            getattr(candidate, "employment_types", None)
        )
        if any(t in wanted_types for t in candidate_types):
            score += 1

    # Skills overlap
    searcher_skills = _as_list(getattr(searcher, "skills", None))
    candidate_skills = _as_list(getattr(candidate, "skills", None))
    if searcher_skills and candidate_skills:
        if any(skill in searcher_skills for skill in candidate_skills):
            score += 1

    # Distance
    radius = filters.get("radius_km")
    if candidate_distance_km is not None and radius is not None and candidate_distance_km <= radius:
        score += 1

    # Language
    language = filters.get("language")
    if not language:
        score += 1
    else:
        languages = [_lower(lang) for lang in _as_list(getattr(candidate, "languages", None))]
        if _lower(language) in languages:
            score += 1

    # Industry
    industry = filters.get("industry")
    if not industry:
        score += 1
    elif _lower(getattr(candidate, "industry", None)) == _lower(industry):
        score += 1

    # Available now
    if filters.get("available_now") is True and getattr(candidate, "available_now", None) is True:
        score += 1

    # Desired salary
    desired = getattr(searcher, "desired_salary", None)
    salary_min = getattr(candidate, "salary_min", None)
    salary_max = getattr(candidate, "salary_max", None)
    if desired is not None and salary_min is not None and salary_max is not None:
        if salary_min <= desired <= salary_max:
            score += 1

    return score


def rank_candidates(
    searcher: Any,
    candidates: Iterable[Any],
    filters: Optional[Dict[str, Any]] = None,
) -> List[Dict[str, Any]]:
    """
    Filter candidates by radius (when an origin and radius are given) and sort
    them by score, best first.

    Returns dicts with keys candidate, distance_km, score. Candidates without
    coordinates are dropped only when a radius filter is active.
    """
    filters = filters or {}
    origin_lat = filters.get("latitude")
    origin_lon = filters.get("longitude")
    radius = filters.get("radius_km")
    has_origin = origin_lat is not None and origin_lon is not None

    ranked = []
    for candidate in candidates:
        lat = getattr(candidate, "latitude", None)
        lon = getattr(candidate, "longitude", None)
        dist = None
        if has_origin and lat is not None and lon is not None:
            dist = distance_km(origin_lat, origin_lon, lat, lon)

        if has_origin and radius is not None and (dist is None or dist > radius):
            continue

        ranked.append({
            "candidate": candidate,
            "distance_km": round(dist, 2) if dist is not None else None,
            "score": calculate_match_score(searcher, candidate, filters, dist),
        })

    # Stable sort keeps storage order among equal scores
    ranked.sort(key=lambda item: item["score"], reverse=True)
    return ranked
