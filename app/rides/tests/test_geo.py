"""Tests for rides.geo."""

import pytest

from core.exceptions import ValidationError
from rides.geo import GeoPoint, haversine_distance


class TestHaversineDistance:
    def test_same_point_is_zero(self):
        point = GeoPoint(-4.325, 15.3222)

        assert haversine_distance(point, point) == 0

    def test_one_thousandth_degree_of_latitude(self):
        distance = haversine_distance(GeoPoint(-4.325, 15.3222), GeoPoint(-4.326, 15.3222))

        assert distance == pytest.approx(111.2, abs=0.5)

    def test_symmetric(self):
        a = GeoPoint(-4.325, 15.3222)
        b = GeoPoint(-4.4419, 15.2663)

        assert haversine_distance(a, b) == pytest.approx(haversine_distance(b, a))

    def test_kinshasa_to_brazzaville(self):
        kinshasa = GeoPoint(-4.3217, 15.3125)
        brazzaville = GeoPoint(-4.2634, 15.2429)

        assert haversine_distance(kinshasa, brazzaville) == pytest.approx(10_060, rel=0.02)


class TestGeoPoint:
    def test_from_dict_accepts_strings(self):
        point = GeoPoint.from_dict({"lat": "-4.325", "lng": "15.3222"})

        assert point == GeoPoint(-4.325, 15.3222)

    @pytest.mark.parametrize(
        "position",
        [None, {}, {"lat": -4.3}, {"lat": "north", "lng": 15.3}, {"lat": "NaN", "lng": 15.3}],
    )
    def test_from_dict_rejects_malformed(self, position):
        with pytest.raises(ValidationError) as exc_info:
            GeoPoint.from_dict(position)

        assert exc_info.value.error_code == "INVALID_COORDINATES"

    @pytest.mark.parametrize("lat,lng", [(91, 0), (-90.5, 0), (0, 180.1), (0, -181)])
    def test_out_of_range(self, lat, lng):
        with pytest.raises(ValidationError) as exc_info:
            GeoPoint(lat, lng)

        assert exc_info.value.error_code == "INVALID_COORDINATES"
