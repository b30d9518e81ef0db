"""
Geofence Validation - great-circle distance against a project region
"""

import math
from typing import Optional

from .types import GeofenceRegion, GeofenceResult, Location


class GeofenceValidator:
    """Decides whether a worker's reported location is on site."""

    EARTH_RADIUS_M = 6371000
    ACCURACY_WARNING_M = 50
    ACCURACY_RETRY_M = 100

    @staticmethod
    def haversine_distance(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
        """Distance between two points in meters."""
        phi1 = math.radians(lat1)
        phi2 = math.radians(lat2)
        delta_phi = math.radians(lat2 - lat1)
        delta_lambda = math.radians(lon2 - lon1)

        a = (
            math.sin(delta_phi / 2) ** 2
            + math.cos(phi1) * math.cos(phi2) * math.sin(delta_lambda / 2) ** 2
        )
        c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))

        return GeofenceValidator.EARTH_RADIUS_M * c

    @classmethod
    def validate_location(cls, point: Location, region: GeofenceRegion) -> GeofenceResult:
        """
        Check ``point`` against ``region``.

        Strict regions require containment in the radius; lenient ones allow
        the configured variance on top. A poor GPS fix (accuracy above 50m)
        adds a warning, and above 100m a failed check is retried with the
        accuracy added to the radius. The retry can flip ``is_valid`` but
        never ``inside_geofence``.
        """
        distance = cls.haversine_distance(
            point.latitude,
            point.longitude,
            region.center_latitude,
            region.center_longitude,
        )
        inside = distance <= region.radius_meters

        if region.strict_mode:
            allowed = region.radius_meters
        else:
            allowed = region.radius_meters + region.allowed_variance_meters
        is_valid = distance <= allowed

        accuracy = point.accuracy
        warning = None
        adjusted = False
        if accuracy is not None and accuracy > cls.ACCURACY_WARNING_M:
            warning = (
                f"GPS accuracy is poor ({round(accuracy)}m). "
                "Location validation may be unreliable."
            )
            if accuracy > cls.ACCURACY_RETRY_M and not is_valid:
                effective = region.radius_meters + accuracy
                if distance <= effective:
                    is_valid = True
                    adjusted = True
                    allowed = effective

        return GeofenceResult(
            inside_geofence=inside,
            distance_meters=distance,
            is_valid=is_valid,
            message=cls._message(is_valid, adjusted, distance, region),
            allowed_radius_meters=allowed,
            strict_validation=region.strict_mode,
            accuracy_meters=accuracy,
            accuracy_warning=warning,
            accuracy_adjusted=adjusted,
        )

    @staticmethod
    def _message(is_valid: bool, adjusted: bool, distance: float, region: GeofenceRegion) -> str:
        if is_valid and adjusted:
            return 'Location accepted after adjusting for GPS accuracy'
        if is_valid:
            return 'Location validated successfully'
        message = (
            f"You are {round(distance)}m from the project site. "
            f"Maximum allowed distance is {region.radius_meters}m"
        )
        if not region.strict_mode:
            message += f" (with {region.allowed_variance_meters}m variance)"
        return message + '.'


def gps_accuracy_quality(accuracy: Optional[float]) -> str:
    """Bucket a GPS accuracy reading for display."""
    if not accuracy or accuracy <= 0:
        return 'unknown'
    if accuracy <= 5:
        return 'excellent'
    if accuracy <= 15:
        return 'good'
    if accuracy <= 50:
        return 'fair'
    if accuracy <= 100:
        return 'poor'
    return 'very_poor'
