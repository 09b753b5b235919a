"""
Weather Service Models
"""

from .reference import UserProfile, Aircraft
from .booking import Booking
from .availability import AvailabilityPattern
from .conflict import WeatherConflict, RescheduleProposal
from .notification import Notification

__all__ = [
    'UserProfile',
    'Aircraft',
    'Booking',
    'AvailabilityPattern',
    'WeatherConflict',
    'RescheduleProposal',
    'Notification',
]
