"""
Filters - drop listings before the expensive judgment step.
"""
import logging
import math

from ..models.listing import Listing
from ..models.scoring import ScoredListing


logger = logging.getLogger(__name__)

EARTH_RADIUS_KM = 6371.0


def haversine_km(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Great-circle distance between two points in kilometres."""
    d_lat = math.radians(lat2 - lat1)
    d_lon = math.radians(lon2 - lon1)
    a = (
        math.sin(d_lat / 2) ** 2
        + math.cos(math.radians(lat1)) * math.cos(math.radians(lat2)) * math.sin(d_lon / 2) ** 2
    )
    return EARTH_RADIUS_KM * 2 * math.asin(math.sqrt(a))


class DistanceFilter:
    """
    Keeps listings within ``max_km`` of a reference point.
    Listings without coordinates are dropped.
    """

    def __init__(self, ref_lat: float, ref_lon: float, max_km: float):
        self.ref_lat = ref_lat
        self.ref_lon = ref_lon
        self.max_km = max_km

    def filter(self, listings: list[Listing]) -> list[Listing]:
        """
        Args:
            listings: Extracted listings

        Returns:
            Copies of the listings in range with ``distance_km`` set, nearest first
        """
        in_range = []
        for listing in listings:
            lat, lon = listing.location.latitude, listing.location.longitude
            if lat is None or lon is None:
                continue
            distance = round(haversine_km(self.ref_lat, self.ref_lon, lat, lon))
            if distance > self.max_km:
                continue
            in_range.append(listing.model_copy(update={"distance_km": float(distance)}))

        in_range.sort(key=lambda l: l.distance_km)

        logger.info(
            f"Filtered {len(listings)} listings -> {len(in_range)} within {self.max_km:g} km "
            f"of ({self.ref_lat}, {self.ref_lon})"
        )
        return in_range


class AlgorithmicGate:
    """Drops listings whose mean algorithmic score is below a threshold."""

    def __init__(self, min_score: float = 5.0):
        self.min_score = min_score

    def filter(self, scored: list[ScoredListing]) -> list[ScoredListing]:
        passed = []
        for item in scored:
            avg = item.algorithmic.mean
            if avg < self.min_score:
                logger.info(
                    f"Dropping \"{item.listing.title}\" ({item.listing.ref}), "
                    f"algorithmic avg {avg:.1f} < {self.min_score}"
                )
                continue
            passed.append(item)

        logger.info(
            f"{len(passed)}/{len(scored)} listings pass algorithmic threshold (>= {self.min_score})"
        )
        return passed
