"""
Plain-text workout plans to Zwift .zwo files.

Each line of a plan looks like:
    - Warmup: 10 min at easy pace [Cadence: 90, Notes: Spin up]
"""

import re
from dataclasses import dataclass
from typing import List, Optional
from xml.sax.saxutils import quoteattr

SEGMENT_PATTERN = re.compile(
    r"^-\s*([^:]+):\s*(\d+\s*(?:min|sec))\s*at\s*([^\[\n]+)(?:\s*\[([^\]]+)\])?",
    re.IGNORECASE,
)
DURATION_PATTERN = re.compile(r"(\d+)\s*(min|sec)", re.IGNORECASE)
CADENCE_PATTERN = re.compile(r"Cadence:\s*(\d+)", re.IGNORECASE)
NOTES_PATTERN = re.compile(r"Notes:\s*([^\]]+)", re.IGNORECASE)
FTP_PATTERN = re.compile(r"(\d+)%\s*ftp")

DEFAULT_POWER = 0.75

# FTP fractions for descriptive targets
ZONE_POWER = {
    "very easy": 0.5,
    "easy": 0.6,
    "zone 1": 0.6,
    "zone 2": 0.75,
    "moderate": 0.75,
    "tempo": 0.85,
    "zone 3": 0.85,
    "threshold": 1.0,
    "zone 4": 1.0,
    "hard": 1.05,
    "zone 5": 1.1,
    "very hard": 1.15,
    "max": 1.2,
}

ZWO_TEMPLATE = """<workout_file>
    <author>Strava MCP Server</author>
    <name>Generated Workout</name>
    <description>Workout generated based on recent activities</description>
    <sportType>bike</sportType>
    <tags></tags>
    <workout>
{segments}
    </workout>
</workout_file>"""


@dataclass
class WorkoutSegment:
    type: str
    duration_seconds: int
    target: str
    cadence: Optional[int] = None
    notes: Optional[str] = None


def target_to_power(target: str) -> float:
    """Explicit "N% FTP" wins; otherwise the longest matching zone phrase; otherwise 0.75."""
    target = target.lower()
    ftp_match = FTP_PATTERN.search(target)
    if ftp_match:
        return int(ftp_match.group(1)) / 100

    for phrase in sorted(ZONE_POWER, key=len, reverse=True):
        if phrase in target:
            return ZONE_POWER[phrase]
    return DEFAULT_POWER


def parse_duration(duration: str) -> int:
    match = DURATION_PATTERN.search(duration)
    if not match:
        raise ValueError(f"Invalid duration format: {duration}")
    value = int(match.group(1))
    return value * 60 if match.group(2).lower() == "min" else value


def parse_workout_text(text: str) -> List[WorkoutSegment]:
    segments = []
    for line in text.split("\n"):
        match = SEGMENT_PATTERN.match(line.strip())
        if not match:
            continue
        segment_type, duration, target, extras = match.groups()
        segment = WorkoutSegment(
            type=segment_type.strip(),
            duration_seconds=parse_duration(duration.strip()),
            target=target.strip(),
        )
        if extras:
            cadence = CADENCE_PATTERN.search(extras)
            if cadence:
                segment.cadence = int(cadence.group(1))
            notes = NOTES_PATTERN.search(extras)
            if notes:
                segment.notes = notes.group(1).strip()
        segments.append(segment)
    return segments


def generate_zwo(segments: List[WorkoutSegment]) -> str:
    lines = []
    for segment in segments:
        attrs = f'Duration="{segment.duration_seconds}" Power="{target_to_power(segment.target):g}"'
        if segment.cadence:
            attrs += f' Cadence="{segment.cadence}"'
        if "ftp" in segment.target.lower():
            attrs += ' ShowsPower="1"'
        if segment.notes:
            attrs += f" textEvent={quoteattr(segment.notes)}"
        lines.append(f"        <SteadyState {attrs}/>")
    return ZWO_TEMPLATE.format(segments="\n".join(lines))
