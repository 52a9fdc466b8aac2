"""Spatial-key partitioning of a query disk into geohash ranges.

The covering follows the geofire approach: pick the geohash bit depth whose
cells are at least as large as the query radius, encode the center plus the
eight points of the radius bounding box at that depth, widen each hash to the
range of its cell, then drop duplicates and join touching ranges. A disk that
reaches a pole is sampled across its whole latitude band instead. Every point
within ``radius_m`` of the center falls inside one of the returned ranges.
"""

from __future__ import annotations

import math

import geohash

from civicmap.models import GeoPoint, Partition, Viewport

BASE32 = "0123456789bcdefghjkmnpqrstuvwxyz"
BITS_PER_CHAR = 5
MAXIMUM_BITS_PRECISION = 22 * BITS_PER_CHAR
RANGE_SENTINEL = "~"

EARTH_RADIUS_KM = 6371.0
EARTH_EQ_RADIUS_M = 6378137.0
EARTH_MERIDIONAL_CIRCUMFERENCE_M = 40007860.0
METERS_PER_DEGREE_LATITUDE = 110574.0
E2 = 0.00669447819799
EPSILON = 1e-12
MAX_ENCODABLE_LATITUDE = 89.9999999999


def distance_between_km(a: GeoPoint, b: GeoPoint) -> float:
    """Great-circle (haversine) distance in kilometers."""
    lat_delta = math.radians(b.lat - a.lat)
    lng_delta = math.radians(b.lng - a.lng)
    h = (math.sin(lat_delta / 2) ** 2) + (
        math.cos(math.radians(a.lat)) * math.cos(math.radians(b.lat)) * (math.sin(lng_delta / 2) ** 2)
    )
    c = 2 * math.atan2(math.sqrt(h), math.sqrt(1 - h))
    return EARTH_RADIUS_KM * c


def viewport_radius_m(viewport: Viewport, multiplier: float) -> float:
    return distance_between_km(viewport.center, viewport.bounds.north_east) * multiplier


def _meters_to_longitude_degrees(distance: float, latitude: float) -> float:
    radians = math.radians(latitude)
    num = math.cos(radians) * EARTH_EQ_RADIUS_M * math.pi / 180
    denom = 1 / math.sqrt(1 - E2 * math.sin(radians) * math.sin(radians))
    delta_deg = num * denom
    if delta_deg < EPSILON:
        return 360.0 if distance > 0 else 0.0
    return min(360.0, distance / delta_deg)


def _longitude_bits_for_resolution(resolution: float, latitude: float) -> float:
    degs = _meters_to_longitude_degrees(resolution, latitude)
    return max(1.0, math.log2(360 / degs)) if abs(degs) > 0.000001 else 1.0


def _latitude_bits_for_resolution(resolution: float) -> float:
    return min(math.log2(EARTH_MERIDIONAL_CIRCUMFERENCE_M / 2 / resolution), MAXIMUM_BITS_PRECISION)


def _wrap_longitude(longitude: float) -> float:
    if -180 <= longitude <= 180:
        return longitude
    adjusted = longitude + 180
    if adjusted > 0:
        return (adjusted % 360) - 180
    return 180 - (-adjusted % 360)


def _bounding_box_bits(center: GeoPoint, size: float) -> int:
    lat_delta = size / METERS_PER_DEGREE_LATITUDE
    latitude_north = min(90.0, center.lat + lat_delta)
    latitude_south = max(-90.0, center.lat - lat_delta)
    bits_lat = math.floor(_latitude_bits_for_resolution(size)) * 2
    bits_long_north = math.floor(_longitude_bits_for_resolution(size, latitude_north)) * 2 - 1
    bits_long_south = math.floor(_longitude_bits_for_resolution(size, latitude_south)) * 2 - 1
    return int(min(bits_lat, bits_long_north, bits_long_south, MAXIMUM_BITS_PRECISION))


def _bounding_box_points(center: GeoPoint, radius: float, bits: int) -> list[tuple[float, float]]:
    lat_degrees = radius / METERS_PER_DEGREE_LATITUDE
    latitude_north = min(90.0, center.lat + lat_degrees)
    latitude_south = max(-90.0, center.lat - lat_degrees)
    long_degs = max(
        _meters_to_longitude_degrees(radius, latitude_north),
        _meters_to_longitude_degrees(radius, latitude_south),
    )
    if latitude_north >= 90.0 or latitude_south <= -90.0 or long_degs >= 180.0:
        return _band_points(latitude_south, latitude_north, bits)
    west = _wrap_longitude(center.lng - long_degs)
    east = _wrap_longitude(center.lng + long_degs)
    points: list[tuple[float, float]] = []
    for lat in (center.lat, latitude_north, latitude_south):
        points.extend([(lat, center.lng), (lat, west), (lat, east)])
    return points


def _band_points(latitude_south: float, latitude_north: float, bits: int) -> list[tuple[float, float]]:
    """One sample per cell of a full-longitude band at ``bits`` depth.

    A disk that reaches a pole, or spans half the globe in longitude, holds
    every longitude between its southern and northern latitudes.
    """
    cell_width = 360.0 / (1 << ((bits + 1) // 2))
    cell_height = 180.0 / (1 << (bits // 2))
    latitudes: list[float] = []
    lat = latitude_south
    while lat < latitude_north:
        latitudes.append(lat)
        lat += cell_height
    latitudes.append(latitude_north)
    longitudes: list[float] = []
    lng = -180.0
    while lng < 180.0:
        longitudes.append(lng)
        lng += cell_width
    return [(lat, lng) for lat in latitudes for lng in longitudes]


def _cell_range(hash_value: str, bits: int) -> tuple[str, str]:
    precision = math.ceil(bits / BITS_PER_CHAR)
    if len(hash_value) < precision:
        return (hash_value, hash_value + RANGE_SENTINEL)
    hash_value = hash_value[:precision]
    base = hash_value[:-1]
    last_value = BASE32.index(hash_value[-1])
    significant_bits = bits - len(base) * BITS_PER_CHAR
    unused_bits = BITS_PER_CHAR - significant_bits
    start_value = (last_value >> unused_bits) << unused_bits
    end_value = start_value + (1 << unused_bits)
    if end_value > 31:
        return (base + BASE32[start_value], base + RANGE_SENTINEL)
    return (base + BASE32[start_value], base + BASE32[end_value])


def _encode(lat: float, lng: float, precision: int) -> str:
    # geohash.encode rejects latitude == 90.0
    if lng >= 180.0:
        lng -= 360.0
    return geohash.encode(min(lat, MAX_ENCODABLE_LATITUDE), lng, precision)


def _join_ranges(ranges: list[tuple[str, str]]) -> list[tuple[str, str]]:
    joined: list[tuple[str, str]] = []
    for low, high in sorted(set(ranges)):
        if joined and low <= joined[-1][1]:
            prev_low, prev_high = joined[-1]
            joined[-1] = (prev_low, max(prev_high, high))
            continue
        joined.append((low, high))
    return joined


def partition_disk(center: GeoPoint, radius_m: float) -> list[Partition]:
    """Return the minimal ordered set of geohash ranges covering a disk."""
    if radius_m <= 0 or not math.isfinite(radius_m):
        # A degenerate disk still needs the center's cell at full depth.
        radius_m = 1.0
    query_bits = max(1, _bounding_box_bits(center, radius_m))
    precision = math.ceil(query_bits / BITS_PER_CHAR)
    ranges = [
        _cell_range(_encode(lat, lng, precision), query_bits)
        for lat, lng in _bounding_box_points(center, radius_m, query_bits)
    ]
    return [Partition(low=low, high=high) for low, high in _join_ranges(ranges)]


def spatial_key(point: GeoPoint, precision: int = 10) -> str:
    """Geohash of ``point`` used as the store's range-queryable key."""
    return _encode(point.lat, point.lng, precision)
