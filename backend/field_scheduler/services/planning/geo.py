"""Расстояния и время в пути между точками (без внешних сервисов)"""
from math import radians, sin, cos, asin, sqrt

from ...schemas.installation import Coordinates

EARTH_RADIUS_MILES = 3959


def haversine_miles(a: Coordinates, b: Coordinates) -> float:
    """Расстояние по большому кругу в милях, округлённое до сотых"""
    lat1, lat2 = radians(a.lat), radians(b.lat)
    dlat = radians(b.lat - a.lat)
    dlng = radians(b.lng - a.lng)

    h = sin(dlat / 2) ** 2 + cos(lat1) * cos(lat2) * sin(dlng / 2) ** 2
    return round(2 * EARTH_RADIUS_MILES * asin(sqrt(h)), 2)


def estimate_travel_minutes(miles: float, speed_mph: float, buffer_multiplier: float = 1.0) -> int:
    """Время в пути в минутах с запасом на трафик"""
    if miles <= 0 or speed_mph <= 0:
        return 0
    return round(miles / speed_mph * 60 * buffer_multiplier)
