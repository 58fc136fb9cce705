"""
Activity stream statistics and per-point formatting.
"""

import math
from typing import Any, Dict, List

from .schemas import Stream

STREAM_TYPES = [
    "time",
    "distance",
    "latlng",
    "altitude",
    "velocity_smooth",
    "heartrate",
    "cadence",
    "watts",
    "temp",
    "moving",
    "grade_smooth",
]
DEFAULT_STREAM_TYPES = ["time", "distance", "heartrate", "cadence", "watts"]
RESOLUTIONS = ["low", "medium", "high"]

CHUNK_SIZE = 1000
NORMALIZED_POWER_WINDOW = 30


def normalized_power(watts: List[float]) -> int:
    """30-sample rolling average, raised to the 4th power, averaged, 4th root. 0 for short rides."""
    if len(watts) < NORMALIZED_POWER_WINDOW:
        return 0
    rolling = []
    for i in range(NORMALIZED_POWER_WINDOW - 1, len(watts)):
        window = watts[i - NORMALIZED_POWER_WINDOW + 1:i + 1]
        rolling.append(sum(window) / NORMALIZED_POWER_WINDOW)
    fourth_power_mean = sum(value ** 4 for value in rolling) / len(rolling)
    return round(fourth_power_mean ** 0.25)


def stream_statistics(streams: List[Stream]) -> Dict[str, Any]:
    statistics: Dict[str, Any] = {}
    for stream in streams:
        data = stream.data
        stats: Dict[str, Any] = {
            "total_points": len(data),
            "resolution": stream.resolution,
            "series_type": stream.series_type,
        }
        numeric = [v for v in data if isinstance(v, (int, float)) and not isinstance(v, bool)]
        if numeric:
            if stream.type == "heartrate":
                stats.update(max=max(numeric), min=min(numeric), avg=round(sum(numeric) / len(numeric)))
            elif stream.type == "watts":
                stats.update(
                    max=max(numeric),
                    avg=round(sum(numeric) / len(numeric)),
                    normalized_power=normalized_power(numeric),
                )
            elif stream.type == "velocity_smooth":
                stats.update(
                    max_kph=round(max(numeric) * 3.6, 1),
                    avg_kph=round(sum(numeric) / len(numeric) * 3.6, 1),
                )
        statistics[stream.type] = stats
    return statistics


def _clock(seconds: float) -> str:
    seconds = int(seconds)
    return f"{seconds // 3600 % 24:02d}:{seconds % 3600 // 60:02d}:{seconds % 60:02d}"


def format_points(stream_type: str, data: List[Any]) -> List[Any]:
    if stream_type == "latlng":
        return [{"latitude": round(lat, 6), "longitude": round(lng, 6)} for lat, lng in data]
    if stream_type == "time":
        return [{"seconds_from_start": s, "formatted": _clock(s)} for s in data]
    if stream_type == "distance":
        return [{"meters": m, "kilometers": round(m / 1000, 2)} for m in data]
    if stream_type == "velocity_smooth":
        return [{"meters_per_second": v, "kilometers_per_hour": round(v * 3.6, 1)} for v in data]
    if stream_type == "grade_smooth":
        return [round(g, 1) for g in data]
    return list(data)


def slice_streams(streams: List[Stream], start: int, end: int) -> Dict[str, Any]:
    return {stream.type: format_points(stream.type, stream.data[start:end]) for stream in streams}


def paginate_streams(streams: List[Stream], page: int, points_per_page: int) -> Dict[str, Any]:
    """
    One page of formatted points plus metadata and statistics.
    Raises ValueError when `page` is outside 1..total_pages.
    """
    total_points = len(streams[0].data)
    total_pages = max(1, math.ceil(total_points / points_per_page))
    if page < 1 or page > total_pages:
        raise ValueError(f"Invalid page number. Please specify a page between 1 and {total_pages}")

    start = (page - 1) * points_per_page
    end = min(start + points_per_page, total_points)
    return {
        "metadata": {
            "available_types": [s.type for s in streams],
            "total_points": total_points,
            "current_page": page,
            "total_pages": total_pages,
            "points_per_page": points_per_page,
            "points_in_page": end - start,
        },
        "statistics": stream_statistics(streams),
        "streams": slice_streams(streams, start, end),
    }


def chunk_streams(streams: List[Stream], chunk_size: int = CHUNK_SIZE) -> List[Dict[str, Any]]:
    """Split every point into (start, end, streams) chunks of `chunk_size` points."""
    total_points = len(streams[0].data)
    chunks = []
    for start in range(0, total_points, chunk_size):
        end = min(start + chunk_size, total_points)
        chunks.append({"start": start, "end": end, "streams": slice_streams(streams, start, end)})
    return chunks
