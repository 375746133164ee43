from decimal import Decimal

from django.test import SimpleTestCase

from blood.services.distance import distance_km


class DistanceTests(SimpleTestCase):
	points = [(19.0, 72.8), (19.05, 72.85), (20.5, 73.9), (-33.86, 151.21), (51.5, -0.12), (0.0, 179.9)]

	def test_zero_for_identical_points(self):
		for lat, lon in self.points:
			self.assertEqual(distance_km(lat, lon, lat, lon), 0.0)

	def test_symmetric(self):
		for a in self.points:
			for b in self.points:
				self.assertAlmostEqual(distance_km(*a, *b), distance_km(*b, *a), places=9)

	def test_known_distances(self):
		self.assertAlmostEqual(distance_km(19.0, 72.8, 19.05, 72.85), 7.65, delta=0.1)
		self.assertAlmostEqual(distance_km(19.0, 72.8, 20.5, 73.9), 202.7, delta=1.0)
		# One degree of latitude along a meridian.
		self.assertAlmostEqual(distance_km(0, 0, 1, 0), 111.19, places=1)

	def test_monotonic_with_separation(self):
		distances = [distance_km(0, 0, 0, step / 10) for step in range(1, 50)]
		self.assertEqual(distances, sorted(distances))

	def test_accepts_decimals(self):
		self.assertAlmostEqual(
			distance_km(Decimal("19.000000"), Decimal("72.800000"), 19.05, 72.85),
			distance_km(19.0, 72.8, 19.05, 72.85),
		)
