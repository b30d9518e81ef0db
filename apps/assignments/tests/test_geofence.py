from django.test import SimpleTestCase

from apps.assignments.services.geofence import GeofenceValidator, gps_accuracy_quality
from apps.assignments.services.types import Location

from .helpers import CENTER_LAT, CENTER_LNG, point_north, region


class HaversineTests(SimpleTestCase):

    def test_same_point_is_zero(self):
        self.assertEqual(GeofenceValidator.haversine_distance(CENTER_LAT, CENTER_LNG, CENTER_LAT, CENTER_LNG), 0)

    def test_one_degree_of_latitude(self):
        distance = GeofenceValidator.haversine_distance(0, 0, 1, 0)
        self.assertAlmostEqual(distance, 111194.93, places=1)

    def test_symmetric(self):
        a = GeofenceValidator.haversine_distance(12.9716, 77.5946, 13.0827, 80.2707)
        b = GeofenceValidator.haversine_distance(13.0827, 80.2707, 12.9716, 77.5946)
        self.assertAlmostEqual(a, b, places=6)


class ValidateLocationTests(SimpleTestCase):

    def test_center_is_always_inside(self):
        for radius in (1, 50, 10000):
            result = GeofenceValidator.validate_location(
                Location(latitude=CENTER_LAT, longitude=CENTER_LNG), region(radius_meters=radius)
            )
            self.assertTrue(result.inside_geofence)
            self.assertTrue(result.is_valid)
            self.assertEqual(result.distance_meters, 0)

    def test_strict_mode_rejects_variance_band(self):
        result = GeofenceValidator.validate_location(point_north(105), region(strict_mode=True))
        self.assertFalse(result.inside_geofence)
        self.assertFalse(result.is_valid)
        self.assertEqual(result.allowed_radius_meters, 100)
        self.assertIn('105m from the project site', result.message)

    def test_lenient_mode_accepts_variance_band(self):
        result = GeofenceValidator.validate_location(point_north(105), region(strict_mode=False))
        self.assertFalse(result.inside_geofence)
        self.assertTrue(result.is_valid)
        self.assertEqual(result.allowed_radius_meters, 110)

    def test_lenient_mode_rejects_beyond_variance(self):
        result = GeofenceValidator.validate_location(point_north(150), region(strict_mode=False))
        self.assertAlmostEqual(result.distance_meters, 150, places=3)
        self.assertFalse(result.is_valid)
        self.assertIn('with 10m variance', result.message)

    def test_moderate_accuracy_warns_without_retry(self):
        result = GeofenceValidator.validate_location(point_north(150, accuracy=60), region(strict_mode=False))
        self.assertFalse(result.is_valid)
        self.assertFalse(result.accuracy_adjusted)
        self.assertIn('GPS accuracy is poor (60m)', result.accuracy_warning)

    def test_poor_accuracy_retries_with_wider_radius(self):
        result = GeofenceValidator.validate_location(point_north(150, accuracy=120), region())
        self.assertTrue(result.is_valid)
        self.assertTrue(result.accuracy_adjusted)
        self.assertFalse(result.inside_geofence)
        self.assertEqual(result.allowed_radius_meters, 220)
        self.assertEqual(result.message, 'Location accepted after adjusting for GPS accuracy')

    def test_poor_accuracy_retry_can_still_fail(self):
        result = GeofenceValidator.validate_location(point_north(500, accuracy=150), region())
        self.assertFalse(result.is_valid)
        self.assertFalse(result.accuracy_adjusted)
        self.assertIsNotNone(result.accuracy_warning)

    def test_good_fix_has_no_warning(self):
        result = GeofenceValidator.validate_location(point_north(20, accuracy=8), region())
        self.assertTrue(result.is_valid)
        self.assertIsNone(result.accuracy_warning)
        self.assertEqual(result.message, 'Location validated successfully')


class AccuracyQualityTests(SimpleTestCase):

    def test_buckets(self):
        self.assertEqual(gps_accuracy_quality(None), 'unknown')
        self.assertEqual(gps_accuracy_quality(3), 'excellent')
        self.assertEqual(gps_accuracy_quality(15), 'good')
        self.assertEqual(gps_accuracy_quality(40), 'fair')
        self.assertEqual(gps_accuracy_quality(100), 'poor')
        self.assertEqual(gps_accuracy_quality(250), 'very_poor')
