import pytest

from strava_mcp.workout import generate_zwo, parse_duration, parse_workout_text, target_to_power

PLAN = """
Sweet spot session
- Warmup: 10 min at easy pace [Cadence: 90, Notes: Spin up]
- Interval: 8 min at 90% FTP
- Recovery: 120 sec at very easy
- Sprint: 30 sec at very hard [Notes: All out, stay seated]
this line is ignored
"""


@pytest.mark.parametrize("target, power", [
    ("95% FTP", 0.95),
    ("threshold", 1.0),
    ("very hard", 1.15),
    ("very easy spin", 0.5),
    ("hard", 1.05),
    ("Zone 2 endurance", 0.75),
    ("whatever feels right", 0.75),
])
def test_target_to_power(target, power):
    assert target_to_power(target) == power


def test_parse_duration():
    assert parse_duration("10 min") == 600
    assert parse_duration("45sec") == 45
    with pytest.raises(ValueError):
        parse_duration("an hour")


def test_parse_workout_text():
    segments = parse_workout_text(PLAN)

    assert [s.type for s in segments] == ["Warmup", "Interval", "Recovery", "Sprint"]
    assert [s.duration_seconds for s in segments] == [600, 480, 120, 30]
    assert segments[0].target == "easy pace"
    assert segments[0].cadence == 90
    assert segments[0].notes == "Spin up"
    assert segments[3].notes == "All out, stay seated"
    assert segments[1].cadence is None


def test_generate_zwo():
    xml = generate_zwo(parse_workout_text(PLAN))

    assert xml.startswith("<workout_file>")
    assert '<SteadyState Duration="600" Power="0.6" Cadence="90" textEvent="Spin up"/>' in xml
    assert '<SteadyState Duration="480" Power="0.9" ShowsPower="1"/>' in xml
    assert '<SteadyState Duration="30" Power="1.15" textEvent="All out, stay seated"/>' in xml
    assert xml.rstrip().endswith("</workout_file>")


def test_generate_zwo_escapes_notes():
    segments = parse_workout_text('- Cooldown: 5 min at easy [Notes: Legs <3 "done"]')

    xml = generate_zwo(segments)

    assert "textEvent='Legs &lt;3 \"done\"'" in xml
