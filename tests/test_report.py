import json

import pandas as pd
import pytest

from analysis.views import build_views
from report.charts import ChartSpec, build_chart, default_charts, plain_columns
from report.render import publish, render_report, render_table, write_report
from utils.config import with_overrides
from utils.errors import OutputWriteError

from conftest import month_plays


@pytest.fixture
def views(make_events, config):
    events = make_events(month_plays(2023, 1, 100) + month_plays(2023, 2, 150))
    return build_views(events, config)


def test_publish_writes_tables_and_charts(views, config):
    report = publish(views, config)

    assert not report.failures
    assert [s.name for s in report.sections] == list(views)
    for name in views:
        assert (config.tables_dir / f"{name}.csv").is_file()
    for spec in default_charts(views):
        assert (config.charts_dir / f"{spec.name}.html").is_file()

    saved = pd.read_csv(config.tables_dir / "yearly_summary.csv")
    assert saved.loc[0, "plays"] == 250


def test_nothing_written_when_saving_is_off(views, config):
    config = with_overrides(config, save_tables=False, save_charts=False)

    report = publish(views, config)

    assert report.written == []
    assert not config.output_dir.exists()
    assert all(s.table_html for s in report.sections)


def test_chart_format_json(views, config):
    config = with_overrides(config, chart_format="json", save_tables=False)

    publish(views, config)

    spec = json.loads((config.charts_dir / "yearly_hours.json").read_text(encoding="utf-8"))
    assert spec["mark"]["type"] == "bar"


def test_write_failures_are_collected_and_report_still_renders(views, config, tmp_path):
    blocked = tmp_path / "blocked"
    blocked.write_text("not a directory", encoding="utf-8")
    config = with_overrides(config, output_dir=blocked)

    report = publish(views, config)

    assert len(report.failures) == len(views) + len(default_charts(views))
    assert all(isinstance(e, OutputWriteError) for e in report.failures)
    assert report.written == []
    assert "Listening per year" in render_report(report)

    with pytest.raises(OutputWriteError):
        write_report(report, config)


def test_write_report(views, config):
    report = publish(views, with_overrides(config, save_tables=False, save_charts=False))

    path = write_report(report, config, title="My year")

    html = path.read_text(encoding="utf-8")
    assert path == config.output_dir / "report.html"
    assert "<title>My year</title>" in html
    assert "vegaEmbed(" in html
    assert 'id="daily_calendar"' in html
    # the calendar has more rows than a section shows
    assert "First 50 of" in html


def test_render_empty_table():
    assert "no data" in render_table(pd.DataFrame())


def test_plain_columns_drops_nullable_dtypes():
    df = pd.DataFrame({
        "n": pd.array([1, None], dtype="Int64"),
        "s": pd.array(["a", None], dtype="string"),
        "b": pd.array([True, None], dtype="boolean"),
        "f": [1.5, 2.5],
    })

    out = plain_columns(df)

    assert out["n"].dtype == "float64"
    assert out["s"].tolist() == ["a", None]
    assert out["b"].tolist() == [True, None]
    assert out["f"].dtype == "float64"


def test_build_chart_rejects_unknown_mark(views):
    spec = ChartSpec("pie", "yearly_summary", "arc", "year:O", "hours:Q")
    with pytest.raises(ValueError, match="arc"):
        build_chart(views["yearly_summary"], spec)
