"""
Weather Service Business Logic
"""

from .weather_service import WeatherService, WeatherObservation
from .detection_service import ConflictDetectionService, DetectionPassResult
from .slot_service import SlotFinderService, CandidateSlot
from .ranking_service import ProposalRankingService
from .proposal_service import ProposalService
from .notification_service import ConflictNotificationService
from .staleness_service import StalenessService


# Custom Exceptions
class WeatherServiceError(Exception):
    """Base exception for weather service errors."""
    pass


class WeatherProviderError(WeatherServiceError):
    """Weather provider unreachable, timed out or returned an error."""
    pass


class WeatherDataError(WeatherProviderError):
    """Weather provider payload failed validation."""
    pass


class InvalidAirportCodeError(WeatherServiceError):
    """Airport code is not a 3-4 character station identifier."""
    pass


class ReasoningServiceError(WeatherServiceError):
    """Reasoning service unreachable, timed out or returned an error."""
    pass


class RankingResponseError(WeatherServiceError):
    """Reasoning service reply could not be parsed after retrying."""
    pass


class ConflictNotFoundError(WeatherServiceError):
    """Weather conflict not found."""
    pass


class ConflictStateError(WeatherServiceError):
    """Invalid weather conflict state transition."""
    pass


class ProposalNotFoundError(WeatherServiceError):
    """Reschedule proposal not found."""
    pass


class ProposalStateError(WeatherServiceError):
    """Invalid proposal response."""
    pass


__all__ = [
    # Services
    'WeatherService',
    'WeatherObservation',
    'ConflictDetectionService',
    'DetectionPassResult',
    'SlotFinderService',
    'CandidateSlot',
    'ProposalRankingService',
    'ProposalService',
    'ConflictNotificationService',
    'StalenessService',

    # Exceptions
    'WeatherServiceError',
    'WeatherProviderError',
    'WeatherDataError',
    'InvalidAirportCodeError',
    'ReasoningServiceError',
    'RankingResponseError',
    'ConflictNotFoundError',
    'ConflictStateError',
    'ProposalNotFoundError',
    'ProposalStateError',
]
