import pytest

from strava_mcp.schemas import Stream
from strava_mcp.streams import chunk_streams, format_points, normalized_power, paginate_streams, stream_statistics


def make_streams(points):
    return [
        Stream(type="time", data=list(range(points)), series_type="time", resolution="high"),
        Stream(type="heartrate", data=[120 + (i % 40) for i in range(points)], series_type="time", resolution="high"),
    ]


def test_normalized_power_needs_a_full_window():
    assert normalized_power([200] * 29) == 0
    assert normalized_power([200] * 30) == 200


def test_normalized_power_weights_surges():
    steady = [200] * 120
    surging = [100] * 60 + [300] * 60
    assert normalized_power(steady) == 200
    assert normalized_power(surging) > 200


def test_statistics_per_stream_type():
    streams = [
        Stream(type="heartrate", data=[100, 150, 200]),
        Stream(type="velocity_smooth", data=[2.0, 4.0]),
        Stream(type="latlng", data=[[1.0, 2.0]]),
    ]

    stats = stream_statistics(streams)

    assert stats["heartrate"]["max"] == 200
    assert stats["heartrate"]["min"] == 100
    assert stats["heartrate"]["avg"] == 150
    assert stats["velocity_smooth"]["max_kph"] == 14.4
    assert stats["velocity_smooth"]["avg_kph"] == 10.8
    assert stats["latlng"] == {"total_points": 1, "resolution": None, "series_type": None}


def test_format_points():
    assert format_points("time", [3725]) == [{"seconds_from_start": 3725, "formatted": "01:02:05"}]
    assert format_points("distance", [1234.0]) == [{"meters": 1234.0, "kilometers": 1.23}]
    assert format_points("latlng", [[40.1234567, -105.7654321]]) == [{"latitude": 40.123457, "longitude": -105.765432}]
    assert format_points("grade_smooth", [3.14159]) == [3.1]
    assert format_points("heartrate", [140, 141]) == [140, 141]


def test_paginate_streams_slices_every_stream():
    page = paginate_streams(make_streams(250), page=3, points_per_page=100)

    assert page["metadata"]["total_pages"] == 3
    assert page["metadata"]["points_in_page"] == 50
    assert page["metadata"]["available_types"] == ["time", "heartrate"]
    assert page["streams"]["time"][0]["seconds_from_start"] == 200
    assert len(page["streams"]["heartrate"]) == 50


@pytest.mark.parametrize("page", [0, 4])
def test_paginate_streams_rejects_out_of_range_page(page):
    with pytest.raises(ValueError, match="between 1 and 3"):
        paginate_streams(make_streams(250), page=page, points_per_page=100)


def test_chunk_streams_covers_all_points():
    chunks = chunk_streams(make_streams(2500))

    assert [(c["start"], c["end"]) for c in chunks] == [(0, 1000), (1000, 2000), (2000, 2500)]
    assert len(chunks[-1]["streams"]["heartrate"]) == 500
