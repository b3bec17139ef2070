# utils/config.py
import argparse
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Optional

import pandas as pd

from utils.env_loader import load_env

DEFAULT_HISTORY_PATTERNS = ("Streaming_History_Audio_*.json",)
CHART_FORMATS = ("png", "svg", "html", "json")

TRUTHY = {"1", "true", "yes", "y", "on"}
FALSY = {"0", "false", "no", "n", "off"}


@dataclass(frozen=True)
class ReportConfig:
    """Everything a run needs, passed explicitly to the loader, views and reporter."""
    input_dir: Path = Path("data")
    history_patterns: tuple = DEFAULT_HISTORY_PATTERNS
    playlist_file: Optional[Path] = None
    library_file: Optional[Path] = None
    alias_file: Optional[Path] = None
    events_csv: Optional[Path] = None
    output_dir: Path = Path("output")
    save_tables: bool = True
    save_charts: bool = True
    min_year: Optional[int] = None
    primary_artist: Optional[str] = None
    top_n: int = 10
    week_start: int = 0  # 0=Mon ... 6=Sun
    timezone: str = "UTC"
    artist_delimiter: str = ", "
    max_artists: int = 4
    chart_format: str = "png"
    playlist_ids: tuple = field(default_factory=tuple)

    def __post_init__(self):
        if not self.history_patterns:
            raise ValueError("At least one history pattern is required")
        absolute = [p for p in self.history_patterns if Path(p).is_absolute()]
        if absolute:
            raise ValueError(f"History patterns are relative to input_dir, got {absolute}")
        if not 0 <= self.week_start <= 6:
            raise ValueError(f"week_start must be 0..6, got {self.week_start}")
        if self.top_n < 1:
            raise ValueError(f"top_n must be positive, got {self.top_n}")
        if self.max_artists < 1:
            raise ValueError(f"max_artists must be positive, got {self.max_artists}")
        if self.chart_format not in CHART_FORMATS:
            raise ValueError(f"chart_format must be one of {CHART_FORMATS}, got {self.chart_format!r}")
        try:
            pd.Timestamp("2000-01-01", tz=self.timezone)
        except (KeyError, ValueError) as e:
            raise ValueError(f"Unknown timezone {self.timezone!r}") from e

    @property
    def tables_dir(self) -> Path:
        return self.output_dir / "tables"

    @property
    def charts_dir(self) -> Path:
        return self.output_dir / "charts"

    @property
    def report_path(self) -> Path:
        return self.output_dir / "report.html"


def parse_bool(value: str) -> bool:
    t = str(value).strip().lower()
    if t in TRUTHY: return True
    if t in FALSY:  return False
    raise ValueError(f"Not a boolean: {value!r}")


def config_from_env(env: dict) -> dict:
    """Translate REPORT_* environment values into ReportConfig keyword arguments."""
    out = {}
    paths = {
        "REPORT_INPUT_DIR": "input_dir",
        "REPORT_PLAYLIST_FILE": "playlist_file",
        "REPORT_LIBRARY_FILE": "library_file",
        "REPORT_ALIAS_FILE": "alias_file",
        "REPORT_EVENTS_CSV": "events_csv",
        "REPORT_OUTPUT_DIR": "output_dir",
    }
    for key, name in paths.items():
        if env.get(key):
            out[name] = Path(env[key])

    if env.get("REPORT_HISTORY_PATTERNS"):
        out["history_patterns"] = tuple(p.strip() for p in env["REPORT_HISTORY_PATTERNS"].split(",") if p.strip())
    for key, name in [("REPORT_SAVE_TABLES", "save_tables"), ("REPORT_SAVE_CHARTS", "save_charts")]:
        if env.get(key):
            out[name] = parse_bool(env[key])
    for key, name in [("REPORT_MIN_YEAR", "min_year"), ("REPORT_TOP_N", "top_n"),
                      ("REPORT_WEEK_START", "week_start"), ("REPORT_MAX_ARTISTS", "max_artists")]:
        if env.get(key):
            out[name] = int(env[key])
    for key, name in [("REPORT_PRIMARY_ARTIST", "primary_artist"), ("REPORT_TIMEZONE", "timezone"),
                      ("REPORT_ARTIST_DELIMITER", "artist_delimiter"), ("REPORT_CHART_FORMAT", "chart_format")]:
        if env.get(key):
            out[name] = env[key]
    return out


def build_parser():
    ap = argparse.ArgumentParser(description="Build a listening report from a Spotify data export.")
    ap.add_argument("--input-dir", type=Path)
    ap.add_argument("--history-pattern", action="append", dest="history_patterns",
                    help="Glob for history files, relative to --input-dir (repeatable)")
    ap.add_argument("--playlists", type=Path, dest="playlist_file")
    ap.add_argument("--library", type=Path, dest="library_file")
    ap.add_argument("--aliases", type=Path, dest="alias_file")
    ap.add_argument("--events-csv", type=Path)
    ap.add_argument("--output-dir", type=Path)
    ap.add_argument("--save-tables", action=argparse.BooleanOptionalAction, default=None)
    ap.add_argument("--save-charts", action=argparse.BooleanOptionalAction, default=None)
    ap.add_argument("--min-year", type=int)
    ap.add_argument("--primary-artist")
    ap.add_argument("--top-n", type=int)
    ap.add_argument("--week-start", type=int, help="0=Monday ... 6=Sunday")
    ap.add_argument("--timezone")
    ap.add_argument("--artist-delimiter")
    ap.add_argument("--max-artists", type=int)
    ap.add_argument("--chart-format", choices=CHART_FORMATS)
    ap.add_argument("--playlist-id", action="append", dest="playlist_ids",
                    help="Also fetch this playlist from the Spotify Web API (repeatable)")
    ap.add_argument("--log-level", default="INFO")
    ap.add_argument("--log-file", type=Path)
    return ap


def load_config(argv=None, env=None):
    """Defaults, then environment (.env included), then CLI flags.

    Returns the frozen config and the parsed argparse namespace (for the logging flags).
    """
    parser = build_parser()
    args = parser.parse_args(argv)
    if env is None:
        env = load_env()
    try:
        values = config_from_env(env)
        for name, value in vars(args).items():
            if name in ("log_level", "log_file") or value is None:
                continue
            values[name] = tuple(value) if name in ("history_patterns", "playlist_ids") else value
        config = ReportConfig(**values)
    except ValueError as e:
        parser.error(str(e))
    return config, args


def with_overrides(config: ReportConfig, **changes) -> ReportConfig:
    return replace(config, **changes)
