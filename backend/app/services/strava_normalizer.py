"""
Convert raw Strava payloads into the persisted activity shape.

Pure functions, no I/O. The detail payload, the zones payload and the
streams payload each arrive straight from the API; everything here
tolerates missing or malformed fields and degrades them to None rather
than inventing zeros.
"""

import json
import math
from typing import Any, Dict, List, Optional, Union

from app.schemas.activity import HeartRateZone, PersistedActivity, PersistedSplit, TrendPoint
from app.services.units import pace_from_distance_and_time, parse_strava_datetime, speed_to_pace

# Upper bound on trend points kept per activity for charting
MAX_TREND_POINTS = 220

# Stream types the trend chart is built from
TREND_STREAM_TYPES = ("time", "distance", "heartrate", "velocity_smooth")

StreamsPayload = Union[Dict[str, Any], List[Dict[str, Any]]]


def _finite_or_none(value) -> Optional[float]:
    if value is None or isinstance(value, bool):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    return number if math.isfinite(number) else None


# ============== Splits ==============

def to_persisted_split(split: dict) -> PersistedSplit:
    """
    Normalize one entry of ``splits_metric``.

    Pace comes from average_speed when Strava sends it, since it is less
    sensitive to split-boundary rounding than distance/time.
    """
    distance_m = _finite_or_none(split.get("distance")) or 0.0
    elapsed_time_s = _finite_or_none(split.get("elapsed_time")) or 0.0
    average_speed = _finite_or_none(split.get("average_speed"))

    if average_speed is not None:
        pace = speed_to_pace(average_speed)
    else:
        pace = pace_from_distance_and_time(distance_m, elapsed_time_s)

    return PersistedSplit(
        split_index=int(split["split"]),
        distance_m=distance_m,
        elapsed_time_s=int(round(elapsed_time_s)),
        elevation_difference_m=_finite_or_none(split.get("elevation_difference")),
        average_speed_mps=average_speed,
        pace_sec_per_km=pace,
        average_heartrate=_finite_or_none(split.get("average_heartrate")),
        average_cadence=_finite_or_none(split.get("average_cadence")),
        calories=_finite_or_none(split.get("calories")),
    )


# ============== Heart rate zones ==============

def normalize_zone_max_bpm(max_bpm, min_bpm: float) -> Optional[int]:
    """
    Upper bound of a zone bucket, or None for an open-ended zone.

    Strava marks the top zone with -1; anything non-finite, not positive,
    or below the bucket's own minimum is treated the same way.
    """
    value = _finite_or_none(max_bpm)
    if value is None or value <= 0 or value < min_bpm:
        return None
    return int(round(value))


def _select_distribution(activity_zones: List[dict]) -> Optional[List[dict]]:
    with_buckets = [
        zone for zone in activity_zones
        if isinstance(zone, dict) and isinstance(zone.get("distribution_buckets"), list)
    ]
    for zone in with_buckets:
        if zone.get("type") == "heartrate":
            return zone["distribution_buckets"]
    if with_buckets:
        return with_buckets[0]["distribution_buckets"]
    return None


def to_persisted_heart_rate_zones(activity_zones: Optional[List[dict]]) -> List[HeartRateZone]:
    """
    Build Z1..Zn from the heart-rate distribution of a zones payload.

    Buckets keep their source order. Percentages are each bucket's share of
    the summed bucket time, or None when the total is zero.

    Args:
        activity_zones: Response of ``/activities/{id}/zones`` or None

    Returns:
        list: HeartRateZone entries, empty when no distribution exists
    """
    if not activity_zones:
        return []

    buckets = _select_distribution(activity_zones)
    if not buckets:
        return []

    times = []
    for bucket in buckets:
        raw_time = _finite_or_none(bucket.get("time"))
        times.append(int(round(raw_time)) if raw_time is not None and raw_time > 0 else 0)
    total_time_s = sum(times)

    zones = []
    for index, (bucket, time_s) in enumerate(zip(buckets, times)):
        min_raw = _finite_or_none(bucket.get("min"))
        min_bpm = max(0.0, min_raw) if min_raw is not None else 0.0
        zones.append(HeartRateZone(
            zone=f"Z{index + 1}",
            min_bpm=int(round(min_bpm)),
            max_bpm=normalize_zone_max_bpm(bucket.get("max"), min_bpm),
            time_s=time_s,
            percentage=time_s / total_time_s if total_time_s > 0 else None,
        ))
    return zones


# ============== Streams / trend points ==============

def normalize_stream_payload(payload: Optional[StreamsPayload]) -> Dict[str, List[Any]]:
    """
    Reduce either streams response shape to ``{stream_type: data}``.

    Strava returns a dict keyed by type when ``key_by_type=true`` and a list
    of ``{"type": ..., "data": [...]}`` entries otherwise. Only the stream
    types used for trend points are kept.
    """
    normalized: Dict[str, List[Any]] = {}
    if not payload:
        return normalized

    if isinstance(payload, list):
        for stream in payload:
            if not isinstance(stream, dict):
                continue
            stream_type = stream.get("type")
            data = stream.get("data")
            if stream_type in TREND_STREAM_TYPES and isinstance(data, list):
                normalized[stream_type] = data
        return normalized

    if isinstance(payload, dict):
        for stream_type in TREND_STREAM_TYPES:
            stream = payload.get(stream_type)
            if isinstance(stream, dict) and isinstance(stream.get("data"), list):
                normalized[stream_type] = stream["data"]
            elif isinstance(stream, list):
                normalized[stream_type] = stream
        return normalized

    raise TypeError(f"Unsupported streams payload type: {type(payload).__name__}")


def _numeric_series(values: Optional[List[Any]]) -> List[Optional[float]]:
    # Positions are kept so the four series stay aligned by index
    if not values:
        return []
    return [_finite_or_none(item) for item in values]


def downsample_trend_points(points: List[TrendPoint], max_points: int = MAX_TREND_POINTS) -> List[TrendPoint]:
    """
    Evenly stride-sample points down to at most ``max_points``.

    The first and last input points are always kept and the result is
    deterministic for a given input.
    """
    if len(points) <= max_points:
        return list(points)
    if max_points < 2:
        raise ValueError("max_points must be at least 2 to keep both endpoints")

    step = (len(points) - 1) / (max_points - 1)
    used = set()
    sampled = []
    for index in range(max_points):
        position = min(len(points) - 1, max(0, int(round(index * step))))
        if position in used:
            continue
        used.add(position)
        sampled.append(points[position])

    if sampled[0] is not points[0]:
        sampled.insert(0, points[0])
    if sampled[-1] is not points[-1]:
        sampled.append(points[-1])

    return sorted(sampled, key=lambda point: point.elapsed_time_s)


def to_persisted_trend_points(
    streams_payload: Optional[StreamsPayload],
    max_points: int = MAX_TREND_POINTS,
) -> List[TrendPoint]:
    """
    Zip the time/distance/heartrate/velocity streams into trend points.

    A sample is dropped when its elapsed time is missing or negative, or
    when it carries neither heart rate nor a usable pace.
    """
    streams = normalize_stream_payload(streams_payload)

    time_series = _numeric_series(streams.get("time"))
    distance_series = _numeric_series(streams.get("distance"))
    heartrate_series = _numeric_series(streams.get("heartrate"))
    velocity_series = _numeric_series(streams.get("velocity_smooth"))

    length = max(len(time_series), len(distance_series), len(heartrate_series), len(velocity_series))
    if length == 0:
        return []

    def at(series: List[Optional[float]], index: int) -> Optional[float]:
        return series[index] if index < len(series) else None

    points = []
    for index in range(length):
        elapsed = at(time_series, index)
        if elapsed is None or elapsed < 0:
            continue

        heartrate = at(heartrate_series, index)
        pace = speed_to_pace(at(velocity_series, index))
        if heartrate is None and pace is None:
            continue

        points.append(TrendPoint(
            elapsed_time_s=int(round(elapsed)),
            distance_m=at(distance_series, index),
            pace_sec_per_km=pace,
            heartrate=heartrate,
        ))

    if not points:
        return []

    points.sort(key=lambda point: point.elapsed_time_s)
    return downsample_trend_points(points, max_points)


# ============== Activity ==============

def to_persisted_activity(
    detail: dict,
    activity_zones: Optional[List[dict]] = None,
    streams: Optional[StreamsPayload] = None,
) -> PersistedActivity:
    """
    Build the full persisted activity from a detailed Strava activity.

    Args:
        detail: Response of ``/activities/{id}``
        activity_zones: Optional response of ``/activities/{id}/zones``
        streams: Optional response of ``/activities/{id}/streams`` (either shape)

    Returns:
        PersistedActivity ready for RunRepository.upsert_run_activity

    Raises:
        KeyError: If the detail lacks id, name, start date or durations
        pydantic.ValidationError: If required numeric fields are unusable
    """
    start_date_local = detail["start_date_local"]
    start_date = parse_strava_datetime(detail.get("start_date") or start_date_local)
    route = detail.get("map") or {}

    return PersistedActivity(
        strava_id=int(detail["id"]),
        name=detail["name"],
        device_name=detail.get("device_name"),
        start_date=start_date,
        start_date_local=start_date_local,
        distance_m=_finite_or_none(detail.get("distance")) or 0.0,
        moving_time_s=int(detail["moving_time"]),
        elapsed_time_s=int(detail["elapsed_time"]),
        total_elevation_gain_m=_finite_or_none(detail.get("total_elevation_gain")) or 0.0,
        average_speed_mps=_finite_or_none(detail.get("average_speed")),
        max_speed_mps=_finite_or_none(detail.get("max_speed")),
        average_heartrate=_finite_or_none(detail.get("average_heartrate")),
        max_heartrate=_finite_or_none(detail.get("max_heartrate")),
        average_cadence=_finite_or_none(detail.get("average_cadence")),
        calories=_finite_or_none(detail.get("calories")),
        suffer_score=_finite_or_none(detail.get("suffer_score")),
        map_summary_polyline=route.get("summary_polyline"),
        map_polyline=route.get("polyline"),
        heart_rate_zones=to_persisted_heart_rate_zones(activity_zones),
        trend_points=to_persisted_trend_points(streams),
        raw_json=json.loads(json.dumps(detail)),
        splits=[to_persisted_split(split) for split in detail.get("splits_metric") or []],
    )
