# services/weather-service/src/apps/core/minima.py
"""
Weather Minima

Tiered weather minima keyed by pilot training level, and the evaluator
that turns observations into human-readable violation strings.

The tier table is loaded once at startup into an immutable mapping.
Unknown tiers fall back to the strictest profile.
"""

import logging
from dataclasses import dataclass, replace
from types import MappingProxyType
from typing import Dict, List, Mapping, Optional, Sequence

from django.conf import settings

logger = logging.getLogger(__name__)


STRICTEST_TIER = 'student_pilot'

UNVERIFIED_WEATHER = 'Unable to verify weather conditions'


@dataclass(frozen=True)
class MinimaProfile:
    """Weather thresholds for one pilot tier."""

    tier: str
    min_visibility_mi: float
    min_ceiling_ft: int
    max_wind_kt: int
    max_crosswind_kt: int
    max_cloud_cover_pct: int
    no_thunderstorms: bool = True
    no_icing: bool = True
    clear_skies_required: bool = False


DEFAULT_MINIMA = {
    'student_pilot': {
        'min_visibility_mi': 5,
        'min_ceiling_ft': 5000,
        'max_wind_kt': 10,
        'max_crosswind_kt': 7,
        'max_cloud_cover_pct': 25,
        'no_thunderstorms': True,
        'no_icing': True,
        'clear_skies_required': True,
    },
    'private_pilot': {
        'min_visibility_mi': 3,
        'min_ceiling_ft': 1000,
        'max_wind_kt': 20,
        'max_crosswind_kt': 15,
        'max_cloud_cover_pct': 75,
        'no_thunderstorms': True,
        'no_icing': True,
        'clear_skies_required': False,
    },
    'instrument_rated': {
        'min_visibility_mi': 1,
        'min_ceiling_ft': 200,
        'max_wind_kt': 30,
        'max_crosswind_kt': 20,
        'max_cloud_cover_pct': 100,
        'no_thunderstorms': True,
        'no_icing': True,
        'clear_skies_required': False,
    },
    'commercial_pilot': {
        'min_visibility_mi': 1,
        'min_ceiling_ft': 200,
        'max_wind_kt': 35,
        'max_crosswind_kt': 20,
        'max_cloud_cover_pct': 100,
        'no_thunderstorms': True,
        'no_icing': True,
        'clear_skies_required': False,
    },
}

# Aircraft requirement key -> (profile field, stricter-of function)
AIRCRAFT_REQUIREMENT_FIELDS = {
    'visibility_miles': ('min_visibility_mi', max),
    'ceiling_ft': ('min_ceiling_ft', max),
    'wind_speed_knots': ('max_wind_kt', min),
    'crosswind_knots': ('max_crosswind_kt', min),
    'cloud_cover_percent': ('max_cloud_cover_pct', min),
}

AIRCRAFT_RESTRICTION_FLAGS = ['no_thunderstorms', 'no_icing', 'clear_skies_required']

# Clear-skies threshold used by the clear_skies_required restriction
CLEAR_SKIES_MAX_CLOUD_PCT = 25
CLEAR_SKIES_MIN_CEILING_FT = 5000

_profiles: Mapping[str, MinimaProfile] = MappingProxyType({})


def load_minima_profiles(overrides: Optional[Dict[str, dict]] = None) -> Mapping[str, MinimaProfile]:
    """
    Build the tier table from defaults plus ``WEATHER_MINIMA`` overrides.

    Called from the app config at startup; later calls replace the table.
    """
    global _profiles

    if overrides is None:
        overrides = getattr(settings, 'WEATHER_MINIMA', {}) or {}

    table = {}
    for tier, values in DEFAULT_MINIMA.items():
        table[tier] = MinimaProfile(tier=tier, **{**values, **overrides.get(tier, {})})

    for tier, values in overrides.items():
        if tier not in table:
            table[tier] = MinimaProfile(tier=tier, **{**DEFAULT_MINIMA[STRICTEST_TIER], **values})

    _profiles = MappingProxyType(table)
    logger.info(f"Loaded weather minima for {len(table)} tiers")
    return _profiles


def get_minima_profile(training_level: Optional[str]) -> MinimaProfile:
    """Profile for a training level; unknown levels get the strictest tier."""
    profiles = _profiles or load_minima_profiles()

    profile = profiles.get(training_level or '')
    if profile is None:
        if training_level:
            logger.warning(f"Unknown training level '{training_level}', using {STRICTEST_TIER} minima")
        return profiles[STRICTEST_TIER]
    return profile


def effective_minima(
    training_level: Optional[str],
    aircraft_requirements: Optional[dict] = None
) -> MinimaProfile:
    """Stricter of the pilot tier and the aircraft requirements, per field."""
    profile = get_minima_profile(training_level)
    if not aircraft_requirements:
        return profile

    changes = {}
    for key, (field, stricter) in AIRCRAFT_REQUIREMENT_FIELDS.items():
        value = aircraft_requirements.get(key)
        if value is None:
            continue
        changes[field] = stricter(getattr(profile, field), value)

    for flag in AIRCRAFT_RESTRICTION_FLAGS:
        if aircraft_requirements.get(flag):
            changes[flag] = True

    return replace(profile, **changes) if changes else profile


# =============================================================================
# EVALUATION
# =============================================================================

def _fmt(value) -> str:
    return f"{value:g}" if isinstance(value, (int, float)) else str(value)


def evaluate(observation, minima: MinimaProfile) -> List[str]:
    """Every minima breach for one observation, one string per field."""
    loc = observation.airport
    violations = []

    if observation.visibility_mi < minima.min_visibility_mi:
        violations.append(
            f"Visibility at {loc}: {_fmt(observation.visibility_mi)}mi "
            f"(min: {_fmt(minima.min_visibility_mi)}mi)"
        )

    ceiling_low = observation.ceiling_ft is not None and observation.ceiling_ft < minima.min_ceiling_ft
    if ceiling_low:
        violations.append(
            f"Ceiling at {loc}: {_fmt(observation.ceiling_ft)}ft (min: {_fmt(minima.min_ceiling_ft)}ft)"
        )

    if observation.wind_speed_kt > minima.max_wind_kt:
        violations.append(
            f"Wind at {loc}: {_fmt(observation.wind_speed_kt)}kts (max: {_fmt(minima.max_wind_kt)}kts)"
        )

    if observation.crosswind_kt > minima.max_crosswind_kt:
        violations.append(
            f"Crosswind at {loc}: {_fmt(observation.crosswind_kt)}kts "
            f"(max: {_fmt(minima.max_crosswind_kt)}kts)"
        )

    cloud_high = observation.cloud_cover_pct > minima.max_cloud_cover_pct
    if cloud_high:
        violations.append(
            f"Cloud cover at {loc}: {_fmt(observation.cloud_cover_pct)}% "
            f"(max: {_fmt(minima.max_cloud_cover_pct)}%)"
        )

    if minima.no_thunderstorms and observation.has_thunderstorm:
        violations.append(f"Thunderstorms detected at {loc}: {observation.condition_text}")

    if minima.no_icing and observation.has_icing:
        violations.append(
            f"Icing conditions at {loc}: Temp {_fmt(observation.temp_f)}°F with visible moisture"
        )

    # Not repeated when the cloud or ceiling breach is already reported
    if minima.clear_skies_required and not (cloud_high or ceiling_low):
        not_clear = observation.cloud_cover_pct >= CLEAR_SKIES_MAX_CLOUD_PCT or (
            observation.ceiling_ft is not None and observation.ceiling_ft <= CLEAR_SKIES_MIN_CEILING_FT
        )
        if not_clear:
            violations.append(
                f"Clear skies required at {loc}: {_fmt(observation.cloud_cover_pct)}% cloud cover"
            )

    return violations


def evaluate_checkpoints(results: Sequence, minima: MinimaProfile) -> List[str]:
    """
    Violations across all checkpoints, in checkpoint order.

    ``results`` holds ``(airport, observation)`` pairs; an observation of
    ``None`` means the weather could not be obtained and counts as a
    violation.
    """
    violations = []
    for airport, observation in results:
        if observation is None:
            violations.append(f"{UNVERIFIED_WEATHER} at {airport}")
            continue
        violations.extend(evaluate(observation, minima))
    return violations
