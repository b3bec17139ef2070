# report/render.py
import logging
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path

import pandas as pd
from jinja2 import Environment, FileSystemLoader, select_autoescape

from report.charts import build_chart, default_charts
from utils.errors import OutputWriteError

logger = logging.getLogger(__name__)

TEMPLATE_DIR = Path(__file__).parent / "templates"
TABLE_MAX_ROWS = 50

SECTION_TITLES = {
    "overview": "At a glance",
    "yearly_summary": "Listening per year",
    "device_by_year": "Devices",
    "top_artists": "Top artists",
    "top_artists_by_year": "Top artists by year",
    "top_tracks": "Top tracks",
    "top_tracks_by_year": "Top tracks by year",
    "playback_modes": "Playback modes",
    "shuffle_by_year": "Shuffle",
    "incognito_by_year": "Private sessions",
    "start_reasons": "How tracks started",
    "end_reasons": "How tracks ended",
    "daily_calendar": "Calendar",
    "hourly_calendar": "Hour by hour",
    "weekday_hour": "Weekday x hour",
    "artist_density": "Artist density",
    "release_years": "Release years",
    "playlist_overview": "Playlists",
    "playlist_history": "Playlist tracks in the history",
    "library_tracks": "Saved tracks",
    "library_coverage": "Library coverage",
}


@dataclass
class Section:
    name: str
    title: str
    table_html: str
    rows: int
    charts: list = field(default_factory=list)   # vega-lite JSON strings


@dataclass
class Report:
    sections: list = field(default_factory=list)
    written: list = field(default_factory=list)
    failures: list = field(default_factory=list)


def render_table(df: pd.DataFrame, max_rows: int = TABLE_MAX_ROWS) -> str:
    if df.empty:
        return "<p class=\"muted\">(no data)</p>"
    return df.head(max_rows).to_html(index=False, classes="table", border=0, na_rep="",
                                     float_format=lambda v: f"{v:,.2f}")


def save_table(df: pd.DataFrame, name: str, config) -> Path:
    out = config.tables_dir / f"{name}.csv"
    try:
        out.parent.mkdir(parents=True, exist_ok=True)
        df.to_csv(out, index=False)
    except OSError as e:
        raise OutputWriteError(out, e) from e
    return out


def save_chart(chart, name: str, config) -> Path:
    out = config.charts_dir / f"{name}.{config.chart_format}"
    try:
        out.parent.mkdir(parents=True, exist_ok=True)
        chart.save(str(out))
    except (OSError, ValueError) as e:
        # altair raises ValueError when no image export engine is installed
        raise OutputWriteError(out, e) from e
    return out


def try_write(report: Report, write, obj, name: str, config):
    """Run a writer; a failed write is logged and recorded, never raised."""
    try:
        path = write(obj, name, config)
    except OutputWriteError as e:
        logger.warning("%s", e)
        report.failures.append(e)
        return None
    report.written.append(path)
    logger.debug("Wrote %s", path)
    return path


def publish(views: dict, config, specs=None) -> Report:
    """Render every view (and its charts) and persist them as the config asks."""
    specs = default_charts(views) if specs is None else specs
    by_view = {}
    for spec in specs:
        by_view.setdefault(spec.view, []).append(spec)

    report = Report()
    for name, table in views.items():
        section = Section(name=name, title=SECTION_TITLES.get(name, name.replace("_", " ").title()),
                          table_html=render_table(table), rows=len(table))
        if config.save_tables:
            try_write(report, save_table, table, name, config)

        for spec in by_view.get(name, []):
            chart = build_chart(table, spec)
            section.charts.append(chart.to_json(indent=None))
            if config.save_charts:
                try_write(report, save_chart, chart, spec.name, config)
        report.sections.append(section)

    if report.failures:
        logger.warning("%s output file(s) could not be written", len(report.failures))
    return report


def render_report(report: Report, title: str = "Listening Report") -> str:
    env = Environment(loader=FileSystemLoader(TEMPLATE_DIR), autoescape=select_autoescape(["html", "j2"]))
    template = env.get_template("report.html.j2")
    return template.render(title=title, sections=report.sections, max_rows=TABLE_MAX_ROWS,
                           generated=datetime.now().strftime("%Y-%m-%d %H:%M"))


def write_report(report: Report, config, title: str = "Listening Report") -> Path:
    out = config.report_path
    html = render_report(report, title)
    try:
        out.parent.mkdir(parents=True, exist_ok=True)
        with open(out, "w", encoding="utf-8") as f:
            f.write(html)
    except OSError as e:
        raise OutputWriteError(out, e) from e
    return out
