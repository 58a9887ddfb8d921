"""Geospatial helper functions."""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Optional, Sequence

import numpy as np
from shapely.geometry import LineString, Point

from ..models.domain import GeoPoint

EARTH_RADIUS_M = 6_371_000.0


@dataclass(frozen=True, slots=True)
class NearestPoint:
    point: Optional[GeoPoint]
    distance_meters: float
    index: int = -1


def distance_meters(a: GeoPoint, b: GeoPoint) -> float:
    """Great-circle distance between two points using the Haversine formula."""

    phi1, phi2 = math.radians(a.lat), math.radians(b.lat)
    d_phi = math.radians(b.lat - a.lat)
    d_lambda = math.radians(b.lng - a.lng)

    h = math.sin(d_phi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(d_lambda / 2) ** 2
    c = 2 * math.atan2(math.sqrt(h), math.sqrt(1 - h))
    return EARTH_RADIUS_M * c


def bearing_degrees(a: GeoPoint, b: GeoPoint) -> float:
    """Calculate the initial bearing from ``a`` to ``b``."""

    phi1 = math.radians(a.lat)
    phi2 = math.radians(b.lat)
    delta_lambda = math.radians(b.lng - a.lng)
    y = math.sin(delta_lambda) * math.cos(phi2)
    x = math.cos(phi1) * math.sin(phi2) - math.sin(phi1) * math.cos(phi2) * math.cos(delta_lambda)
    bearing = math.degrees(math.atan2(y, x))
    return (bearing + 360) % 360


def nearest_point_on_polyline(p: GeoPoint, polyline: Sequence[GeoPoint]) -> NearestPoint:
    """Return the polyline vertex closest to ``p``.

    Only vertices are considered, so on sparsely sampled geometry the result
    overestimates the true distance to the route. An empty polyline yields a
    sentinel with an infinite distance.
    """
    if not polyline:
        return NearestPoint(point=None, distance_meters=math.inf)

    coords = np.radians(np.array([(vertex.lat, vertex.lng) for vertex in polyline], dtype=float))
    lat0 = math.radians(p.lat)
    lng0 = math.radians(p.lng)
    d_phi = coords[:, 0] - lat0
    d_lambda = coords[:, 1] - lng0
    h = np.sin(d_phi / 2) ** 2 + math.cos(lat0) * np.cos(coords[:, 0]) * np.sin(d_lambda / 2) ** 2
    distances = 2 * EARTH_RADIUS_M * np.arctan2(np.sqrt(h), np.sqrt(np.clip(1 - h, 0.0, None)))

    index = int(np.argmin(distances))
    vertex = polyline[index]
    # Re-measure with the scalar formula so vertex and direct distances agree exactly.
    return NearestPoint(point=vertex, distance_meters=distance_meters(p, vertex), index=index)


def nearest_point_on_segments(p: GeoPoint, polyline: Sequence[GeoPoint]) -> NearestPoint:
    """Project ``p`` onto the polyline segments and return the closest point.

    The projection happens in a local equirectangular plane centred on ``p``,
    which is accurate for the few-kilometre offsets relevant to deviation
    checks. ``index`` is the segment start vertex of the projected point.
    """
    if not polyline:
        return NearestPoint(point=None, distance_meters=math.inf)
    if len(polyline) == 1:
        return NearestPoint(point=polyline[0], distance_meters=distance_meters(p, polyline[0]), index=0)

    cos_lat = math.cos(math.radians(p.lat))

    def to_plane(vertex: GeoPoint) -> tuple[float, float]:
        x = math.radians(vertex.lng - p.lng) * cos_lat * EARTH_RADIUS_M
        y = math.radians(vertex.lat - p.lat) * EARTH_RADIUS_M
        return x, y

    planar = [to_plane(vertex) for vertex in polyline]
    line = LineString(planar)
    origin = Point(0.0, 0.0)
    projected = line.interpolate(line.project(origin))

    lat = p.lat + math.degrees(projected.y / EARTH_RADIUS_M)
    lng = p.lng
    if cos_lat > 1e-12:
        lng = p.lng + math.degrees(projected.x / (EARTH_RADIUS_M * cos_lat))
    nearest = GeoPoint(lat=max(-90.0, min(90.0, lat)), lng=max(-180.0, min(180.0, lng)))

    segment_index = 0
    best = math.inf
    for i in range(len(planar) - 1):
        gap = LineString(planar[i : i + 2]).distance(projected)
        if gap < best:
            best = gap
            segment_index = i
    return NearestPoint(point=nearest, distance_meters=distance_meters(p, nearest), index=segment_index)


def decode_polyline(polyline: str, precision: int = 5) -> list[GeoPoint]:
    """Decode a Google encoded polyline string into points.

    OSRM uses Google's polyline encoding format for route geometry.
    """
    coordinates: list[GeoPoint] = []
    factor = 10 ** precision
    index = 0
    lat = 0
    lng = 0

    while index < len(polyline):
        deltas = []
        for _ in range(2):
            shift = 0
            result = 0
            while True:
                if index >= len(polyline):
                    raise ValueError("Truncated polyline string.")
                b = ord(polyline[index]) - 63
                index += 1
                result |= (b & 0x1F) << shift
                shift += 5
                if b < 0x20:
                    break
            deltas.append(~(result >> 1) if (result & 1) else (result >> 1))
        lat += deltas[0]
        lng += deltas[1]
        coordinates.append(GeoPoint(lat=lat / factor, lng=lng / factor))

    return coordinates


def encode_polyline(points: Sequence[GeoPoint], precision: int = 5) -> str:
    """Encode points as a Google polyline string."""
    factor = 10 ** precision
    chunks: list[str] = []
    prev_lat = 0
    prev_lng = 0
    for point in points:
        lat = int(round(point.lat * factor))
        lng = int(round(point.lng * factor))
        for delta in (lat - prev_lat, lng - prev_lng):
            value = ~(delta << 1) if delta < 0 else delta << 1
            while value >= 0x20:
                chunks.append(chr((0x20 | (value & 0x1F)) + 63))
                value >>= 5
            chunks.append(chr(value + 63))
        prev_lat, prev_lng = lat, lng
    return "".join(chunks)
