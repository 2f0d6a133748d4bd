import unittest

from incidentdesk.location import (
    DEFAULT_COORDINATES,
    DEFAULT_REGION,
    IntersectionMatcher,
    NeighborhoodMatcher,
    StreetAddressMatcher,
    VenueNameMatcher,
    coordinates_for,
    dominant_location,
    extract_location,
    mentions_location,
)


class TestExtractLocation(unittest.TestCase):
    def test_venue_beats_city_in_same_text(self) -> None:
        found = extract_location("Shots fired at Stanford Shopping Center in Palo Alto")
        self.assertEqual(found.location, "Stanford Shopping Center")
        self.assertGreaterEqual(found.confidence, 0.9)

    def test_valley_fair_with_city(self) -> None:
        found = extract_location("Shooting at Westfield Valley Fair in San Jose")
        self.assertEqual(found.location, "Westfield Valley Fair")
        self.assertEqual(found.confidence, 0.95)

    def test_bare_valley_fair_beats_city(self) -> None:
        found = extract_location("Shots fired at Valley Fair in San Jose")
        self.assertEqual(found.location, "Westfield Valley Fair")
        self.assertEqual(found.confidence, 0.95)

    def test_city_only(self) -> None:
        found = extract_location("Heavy police activity in palo alto tonight")
        self.assertEqual(found.location, "Palo Alto")
        self.assertEqual(found.confidence, 0.75)

    def test_street_address(self) -> None:
        found = extract_location("Police on scene at 123 Main Street")
        self.assertEqual(found.location, "123 Main Street")
        self.assertEqual(found.confidence, 0.9)

    def test_emergency_alert_is_not_an_address(self) -> None:
        found = extract_location("Emergency Alert issued for 100 Oak Way")
        self.assertFalse(found.matched)
        self.assertEqual(found.confidence, 0.0)
        self.assertFalse(StreetAddressMatcher().match("Emergency Alert: 3 Units responding").matched)
        self.assertFalse(extract_location("Emergency Alert: 2 Units Stationed nearby").matched)
        self.assertFalse(StreetAddressMatcher().match("Crowd seen at 4 Birds Placed near the fountain").matched)

    def test_venue_name(self) -> None:
        found = extract_location("Lockdown lifted at Gunn High School")
        self.assertEqual(found.location, "Gunn High School")
        self.assertEqual(found.confidence, 0.85)

    def test_empty_text(self) -> None:
        self.assertFalse(extract_location("").matched)
        self.assertFalse(extract_location(None).matched)


class TestMatchers(unittest.TestCase):
    def test_venue_rejects_action_words(self) -> None:
        self.assertFalse(VenueNameMatcher().match("Officers gathered at Police Headquarters Building").matched)

    def test_intersection(self) -> None:
        found = IntersectionMatcher().match("Crash near Main St and Oak Ave")
        self.assertEqual(found.location, "Main St & Oak Ave")
        self.assertEqual(found.confidence, 0.85)

    def test_neighborhood(self) -> None:
        found = NeighborhoodMatcher().match("Police presence in the Willow Glen neighborhood")
        self.assertEqual(found.location, "Willow Glen neighborhood")
        self.assertEqual(found.confidence, 0.7)

    def test_street_matcher_alone(self) -> None:
        self.assertEqual(StreetAddressMatcher().match("Fire near 55 Elm Street").location, "55 Elm Street")


class TestClusterHelpers(unittest.TestCase):
    def test_dominant_location_sums_confidence(self) -> None:
        texts = ["Scene at Stanford University", "Stanford update", "More from Stanford"]
        self.assertEqual(dominant_location(texts), "Stanford")

    def test_dominant_location_defaults_to_region(self) -> None:
        self.assertEqual(dominant_location(["nothing to see"]), DEFAULT_REGION)

    def test_mentions_location_alias(self) -> None:
        self.assertTrue(mentions_location("Chaos at Valley Fair today", "Westfield Valley Fair"))
        self.assertFalse(mentions_location("Chaos at Valley Fair today", "Westfield Valley Fair", aliases=("stanford",)))
        self.assertFalse(mentions_location("Quiet in Fremont", "Stanford University"))

    def test_coordinates(self) -> None:
        c = coordinates_for("Westfield Valley Fair")
        self.assertEqual((c.lat, c.lng), (37.3230, -121.9465))
        self.assertEqual(coordinates_for("Somewhere Else"), DEFAULT_COORDINATES)
