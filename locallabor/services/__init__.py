from .jobs import JobDiscoveryService, Upload
from .ratings import RatingService

__all__ = ["JobDiscoveryService", "RatingService", "Upload"]
