import streamlit as st

from analysis.views import build_views
from pipeline import load_inputs
from prep.normalize import normalize_events
from report.charts import build_chart, default_charts
from report.render import SECTION_TITLES
from utils.config import load_config, with_overrides
from utils.errors import MalformedRecordError, MissingInputError

st.set_page_config(page_title="Listening Report", layout="wide")

# Tabs group the report tables; anything not listed lands in "More"
TAB_GROUPS = {
    "📈 Overview": ["overview", "yearly_summary", "device_by_year"],
    "👩‍🎤 Artists & Tracks": ["top_artists", "top_artists_by_year", "top_tracks", "top_tracks_by_year", "artist_density"],
    "🔀 Playback": ["playback_modes", "shuffle_by_year", "incognito_by_year", "start_reasons", "end_reasons"],
    "🗓️ Calendar": ["daily_calendar", "weekday_hour", "hourly_calendar"],
    "📚 Playlists & Library": ["playlist_overview", "playlist_history", "library_tracks", "library_coverage"],
}


# ---------------------- I/O & CACHING ----------------------
@st.cache_data(show_spinner=False)
def load_normalized(config):
    inputs = load_inputs(config)
    events = normalize_events(inputs.events, config.timezone, config.week_start)
    history = None
    if inputs.history is not None:
        history = normalize_events(inputs.history, config.timezone, config.week_start)
    return events, inputs.playlists, inputs.library, inputs.aliases, history


base_config, _ = load_config([])

# ---------------------- SIDEBAR ----------------------
st.sidebar.header("Report settings")
min_year = st.sidebar.number_input("Only years from (0 = all)", min_value=0, max_value=2100,
                                   value=base_config.min_year or 0, step=1)
top_n = st.sidebar.slider("Top N", 5, 50, base_config.top_n, 5)
primary_artist = st.sidebar.text_input("Primary artist (left out of artist density)",
                                       value=base_config.primary_artist or "")

config = with_overrides(
    base_config,
    min_year=int(min_year) or None,
    top_n=int(top_n),
    primary_artist=primary_artist.strip() or None,
    save_tables=False,
    save_charts=False,
)

try:
    events, playlists, library, aliases, history = load_normalized(base_config)
except (MissingInputError, MalformedRecordError) as e:
    st.error(str(e))
    st.stop()

views = build_views(events, config, playlists=playlists, library=library, aliases=aliases, history=history)

st.title("🎧 Listening Report")

# ---------------------- KPIs ----------------------
ov = views["overview"].iloc[0] if not views["overview"].empty else None
c1, c2, c3, c4 = st.columns(4)
with c1:
    st.metric("Total Plays", f"{int(ov['plays']):,}" if ov is not None else "0")
with c2:
    st.metric("Total Hours", f"{float(ov['hours']):,.1f}" if ov is not None else "0")
with c3:
    st.metric("Artist Credits", f"{int(ov['artist_credits']):,}" if ov is not None else "0")
with c4:
    st.metric("Days Listened", f"{int(ov['days_listened']):,}" if ov is not None else "0")

st.divider()

# ---------------------- TABS ----------------------
specs = default_charts(views)
grouped = {name for names in TAB_GROUPS.values() for name in names}
groups = dict(TAB_GROUPS)
extra = [n for n in views if n not in grouped]
if extra:
    groups["➕ More"] = extra

tabs = st.tabs(list(groups))
for tab, names in zip(tabs, groups.values()):
    with tab:
        shown = [n for n in names if n in views]
        if not shown:
            st.info("No data for this section. Add the matching export files to the input folder.")
        for name in shown:
            table = views[name]
            st.subheader(SECTION_TITLES.get(name, name.replace("_", " ").title()))
            for spec in specs:
                if spec.view == name:
                    st.altair_chart(build_chart(table, spec), use_container_width=True)
            with st.expander(f"Table ({len(table):,} rows)"):
                st.dataframe(table.head(500), use_container_width=True, hide_index=True)
