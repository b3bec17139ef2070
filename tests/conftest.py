import json
from pathlib import Path

import pandas as pd
import pytest

from ingest.schema import EVENT_SCHEMA, validate_frame
from prep.normalize import normalize_events
from utils.config import ReportConfig

HISTORY_PATTERN = "Streaming_History_Audio_*.json"


def play(ts, track="Song", artist="Artist", ms=180_000, platform="Android OS 10 API 29 (samsung, SM-G973F)",
         shuffle=False, incognito=False, offline=False, skipped=False,
         reason_start="trackdone", reason_end="trackdone", album="Album"):
    """One record in the extended streaming history format."""
    return {
        "ts": ts,
        "platform": platform,
        "ms_played": ms,
        "conn_country": "BE",
        "master_metadata_track_name": track,
        "master_metadata_album_artist_name": artist,
        "master_metadata_album_album_name": album,
        "reason_start": reason_start,
        "reason_end": reason_end,
        "shuffle": shuffle,
        "skipped": skipped,
        "offline": offline,
        "incognito_mode": incognito,
    }


def month_plays(year, month, n):
    """`n` plays spread over the first 28 days of a month, cycling through a few artists."""
    artists = ["Alpha", "Beta, Gamma", "Delta"]
    out = []
    for i in range(n):
        day = i % 28 + 1
        hour = i % 24
        out.append(play(f"{year}-{month:02d}-{day:02d}T{hour:02d}:15:00Z",
                        track=f"Track {i % 7}", artist=artists[i % 3],
                        shuffle=i % 2 == 0, incognito=i % 10 == 0))
    return out


def write_json(path: Path, records):
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(records), encoding="utf-8")
    return path


@pytest.fixture
def export_dir(tmp_path):
    """An input folder with a January (100 plays) and a February (150 plays) history file."""
    d = tmp_path / "export"
    write_json(d / "Streaming_History_Audio_2023_1.json", month_plays(2023, 1, 100))
    write_json(d / "Streaming_History_Audio_2023_2.json", month_plays(2023, 2, 150))
    return d


@pytest.fixture
def config(tmp_path, export_dir):
    return ReportConfig(
        input_dir=export_dir,
        history_patterns=(HISTORY_PATTERN,),
        output_dir=tmp_path / "out",
        chart_format="html",
        top_n=3,
    )


@pytest.fixture
def make_events():
    """Build a validated, normalized event table from play() records."""
    def build(records, timezone="UTC", week_start=0):
        raw = validate_frame(pd.DataFrame.from_records(records), EVENT_SCHEMA, "test")
        return normalize_events(raw, timezone, week_start)
    return build
