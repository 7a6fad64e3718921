import json
import math
import uuid
from datetime import datetime

import pandas as pd
import plotly.graph_objects as go
import streamlit as st

from src.app_config import (
    APP_TITLE,
    GOAL_WINDOW_START_OFFSET_MONTHS,
    METRICS,
    NOTE_MAX_LENGTH,
    OTHER_REASON,
    REASON_OPTIONS,
)
from src.csv_rows import history_frame
from src.data_sources import EVENTS_FILENAME, HISTORY_FILENAME, default_sources, load_events, load_history
from src.errors import DataShapeError, DataSourceError
from src.goals import (
    default_goals,
    default_touched,
    mark_touched,
    month_ready,
    normalize_draft,
    remaining_goals_to_touch,
    toggle_reason,
    update_goal,
    update_note,
)
from src.history_stats import (
    compute_metric_stats,
    last_year_events,
    range_bar_scale,
    regions_from_history,
    round_goal,
    variability_hint,
)
from src.month_window import get_month_window, previous_year_label
from src.persistence import (
    Profile,
    build_draft_key,
    clear_draft,
    default_store,
    load_draft,
    load_profile,
    save_draft,
    save_profile,
    storage_root_path,
)
from src.runtime_logging import (
    append_runtime_event,
    install_global_exception_logging,
    read_runtime_events,
    runtime_log_path,
)
from src.submission import (
    build_email_links,
    build_submission_block,
    build_submission_filename,
    build_submission_payload,
)


install_global_exception_logging()


WINDOW_OPTIONS = ["Two months (default)", "Just upcoming month"]
VARIABILITY_COLORS = {"Consistent": "green", "Mixed": "orange", "Volatile": "red"}
WIDGET_KEY_PREFIXES = ("goal_input:", "reason:", "note:")

UI_DEFAULTS = {
    "screen": "welcome",
    "goal_month_index": 0,
    "identify_snapshot": None,
    "months": [],
    "goals": {},
    "goal_touched": {},
    "draft_key": "",
    "identify_errors": {},
    "pending_toast": "",
    "_saved_draft_signature": "",
    "_history_issue_logged": False,
    "_events_degraded_logged": False,
}


@st.cache_data(show_spinner=False)
def _load_history_cached(sources: tuple[str, ...]):
    result = load_history(list(sources))
    return result.rows, history_frame(result.rows), result.discarded_count


@st.cache_data(show_spinner=False)
def _load_events_cached(sources: tuple[str, ...]):
    return load_events(list(sources)).rows


def _stable_json(value) -> str:
    return json.dumps(value, sort_keys=True, separators=(",", ":"))


def _whole(value: float) -> int:
    return int(math.floor(float(value) + 0.5))


def _goal_widget_key(month_key: str, metric_key: str) -> str:
    return f"goal_input:{month_key}:{metric_key}"


def _reason_widget_key(month_key: str, metric_key: str, reason: str) -> str:
    return f"reason:{month_key}:{metric_key}:{reason}"


def _note_widget_key(month_key: str, metric_key: str) -> str:
    return f"note:{month_key}:{metric_key}"


def _reset_goal_widgets() -> None:
    for key in list(st.session_state.keys()):
        if str(key).startswith(WIDGET_KEY_PREFIXES):
            del st.session_state[key]


def _widget_goal_value(value):
    if value is None:
        return None
    return _whole(value)


def _set_goal(month_key: str, metric_key: str, value) -> None:
    st.session_state["goals"] = update_goal(st.session_state["goals"], month_key, metric_key, value)
    st.session_state["goal_touched"] = mark_touched(st.session_state["goal_touched"], month_key, metric_key)


def _on_goal_input(month_key: str, metric_key: str) -> None:
    _set_goal(month_key, metric_key, st.session_state.get(_goal_widget_key(month_key, metric_key)))


def _on_goal_button(month_key: str, metric_key: str, value) -> None:
    _set_goal(month_key, metric_key, value)
    st.session_state[_goal_widget_key(month_key, metric_key)] = _widget_goal_value(value)


def _on_reason_toggle(month_key: str, metric_key: str, reason: str) -> None:
    checked = bool(st.session_state.get(_reason_widget_key(month_key, metric_key, reason)))
    st.session_state["goals"] = toggle_reason(st.session_state["goals"], month_key, metric_key, reason, checked)
    if reason == OTHER_REASON and not checked:
        st.session_state.pop(_note_widget_key(month_key, metric_key), None)


def _on_note_input(month_key: str, metric_key: str) -> None:
    note = st.session_state.get(_note_widget_key(month_key, metric_key), "")
    st.session_state["goals"] = update_note(st.session_state["goals"], month_key, metric_key, note)


def _go_to(screen: str, month_index: int = 0) -> None:
    st.session_state["screen"] = screen
    st.session_state["goal_month_index"] = month_index


def _on_goals_back() -> None:
    index = int(st.session_state["goal_month_index"])
    if index == 0:
        _go_to("identify")
    else:
        _go_to("goals", index - 1)


def _on_goals_next() -> None:
    index = int(st.session_state["goal_month_index"])
    if index < len(st.session_state["months"]) - 1:
        _go_to("goals", index + 1)
    else:
        _go_to("review")


def _on_clear_draft(history_df: pd.DataFrame) -> None:
    snapshot = st.session_state["identify_snapshot"]
    draft_key = st.session_state["draft_key"]
    if not snapshot or not draft_key:
        return
    clear_draft(default_store(), draft_key)
    months = st.session_state["months"]
    st.session_state["goals"] = default_goals(months, snapshot["region"], snapshot["chapter"], history_df)
    st.session_state["goal_touched"] = default_touched(months)
    st.session_state["_saved_draft_signature"] = ""
    _reset_goal_widgets()
    append_runtime_event(
        level="INFO",
        event="draft_cleared",
        message="Goal draft cleared by user.",
        context={"draft_key": draft_key},
    )
    st.session_state["pending_toast"] = "Draft cleared"


def _on_submission_download(payload: dict, kind: str) -> None:
    append_runtime_event(
        level="INFO",
        event="submission_built",
        message=f"Submission downloaded as {kind}.",
        context={
            "submission_id": payload["submission_id"],
            "region": payload["region"],
            "chapter": payload["chapter"],
            "months": payload["months"],
        },
    )


def _identify_errors(region: str, chapter: str, staff_name: str, chapters: list[str], lock_chapter: bool) -> dict:
    errors = {}
    if not region:
        errors["region"] = "Select a region"
    if len(staff_name) < 2:
        errors["staff_name"] = "Enter your name"
    if chapters and not lock_chapter and not chapter:
        errors["chapter"] = "Select a chapter"
    return errors


def _apply_identify(region: str, chapter: str, staff_name: str, two_months: bool, history_df: pd.DataFrame) -> None:
    store = default_store()
    months = get_month_window(two_months, GOAL_WINDOW_START_OFFSET_MONTHS)
    draft_key = build_draft_key(region, chapter, staff_name, [ref.key for ref in months])
    loaded = load_draft(store, draft_key)
    if loaded is None and store.get(draft_key) is not None:
        append_runtime_event(
            level="WARNING",
            event="draft_load_corrupt",
            message="Stored draft could not be parsed; starting from defaults.",
            context={"draft_key": draft_key},
        )

    if loaded is not None:
        goals = normalize_draft(loaded, months)
    else:
        goals = default_goals(months, region, chapter, history_df)

    _reset_goal_widgets()
    st.session_state["identify_snapshot"] = {"region": region, "chapter": chapter, "staff_name": staff_name}
    st.session_state["months"] = months
    st.session_state["goals"] = goals
    st.session_state["goal_touched"] = default_touched(months)
    st.session_state["draft_key"] = draft_key
    st.session_state["_saved_draft_signature"] = _stable_json(goals) if loaded is not None else ""
    st.session_state["identify_errors"] = {}
    _go_to("goals")

    save_profile(store, Profile(staff_name=staff_name, last_region=region, last_chapter=chapter))


def _autosave_draft() -> None:
    draft_key = st.session_state.get("draft_key")
    if not draft_key or not st.session_state.get("identify_snapshot"):
        return
    signature = _stable_json(st.session_state["goals"])
    if signature == st.session_state.get("_saved_draft_signature"):
        return
    save_draft(default_store(), draft_key, st.session_state["goals"])
    st.session_state["_saved_draft_signature"] = signature


def _range_bar_figure(metric, goal_value, stats) -> go.Figure:
    value = float(goal_value if goal_value is not None else metric.goal_min)
    scale = range_bar_scale(metric.goal_min, value, stats)
    fig = go.Figure()
    fig.add_trace(
        go.Bar(
            x=[scale.scale_max - scale.scale_min],
            base=[scale.scale_min],
            y=["goal"],
            orientation="h",
            marker_color="#e2e8f0",
            hoverinfo="skip",
        )
    )
    if stats.has_history:
        fig.add_trace(
            go.Bar(
                x=[max(stats.max - stats.min, 0.1)],
                base=[stats.min],
                y=["goal"],
                orientation="h",
                marker_color="#a7f3d0",
                hovertemplate=f"Historical range: {_whole(stats.min)}-{_whole(stats.max)}<extra></extra>",
            )
        )
        fig.add_trace(
            go.Scatter(
                x=[stats.avg],
                y=["goal"],
                mode="markers",
                marker=dict(symbol="line-ns-open", size=22, color="#047857", line=dict(width=3)),
                hovertemplate=f"Historical avg: {_whole(stats.avg)}<extra></extra>",
            )
        )
    fig.add_trace(
        go.Scatter(
            x=[scale.value],
            y=["goal"],
            mode="markers+text",
            text=[f"{scale.value:g}"],
            textposition="top center",
            marker=dict(symbol="diamond", size=14, color="#059669" if stats.has_history else "#334155"),
            hovertemplate="Goal: %{x}<extra></extra>",
        )
    )
    fig.update_layout(
        barmode="overlay",
        showlegend=False,
        height=110,
        margin=dict(l=10, r=10, t=20, b=10),
        xaxis=dict(range=[scale.scale_min, scale.scale_max], fixedrange=True),
        yaxis=dict(visible=False, fixedrange=True),
    )
    return fig


st.set_page_config(page_title=APP_TITLE, layout="centered")
st.title(APP_TITLE)
st.caption("Set goals in about 2 minutes with chapter-specific historical context.")

for k, v in UI_DEFAULTS.items():
    st.session_state.setdefault(k, v)

if st.session_state.get("pending_toast"):
    st.toast(st.session_state["pending_toast"])
    st.session_state["pending_toast"] = ""

history_rows = []
history_df = history_frame([])
history_error = ""
try:
    history_rows, history_df, discarded_rows = _load_history_cached(tuple(default_sources(HISTORY_FILENAME)))
except (DataSourceError, DataShapeError) as exc:
    history_error = str(exc)
    if not st.session_state["_history_issue_logged"]:
        append_runtime_event(level="ERROR", event="history_load_failed", message=history_error, exc=exc)
        st.session_state["_history_issue_logged"] = True
else:
    if discarded_rows and not st.session_state["_history_issue_logged"]:
        append_runtime_event(
            level="WARNING",
            event="history_rows_discarded",
            message="Skipped malformed history rows.",
            context={"discarded": discarded_rows, "loaded": len(history_rows)},
        )
        st.session_state["_history_issue_logged"] = True

event_rows = _load_events_cached(tuple(default_sources(EVENTS_FILENAME)))
if not event_rows and not st.session_state["_events_degraded_logged"]:
    append_runtime_event(
        level="INFO",
        event="events_load_degraded",
        message="No last-year event rows available; continuing without them.",
    )
    st.session_state["_events_degraded_logged"] = True

if history_error:
    st.error(history_error)

locked_region = str(st.query_params.get("region", "") or "").strip()
locked_chapter = str(st.query_params.get("chapter", "") or "").strip()
regions = regions_from_history(history_rows)

with st.sidebar:
    st.header("Diagnostics")
    st.caption(f"History rows loaded: {len(history_rows)}")
    st.caption(f"Last-year event rows loaded: {len(event_rows)}")
    st.caption(f"Local storage: `{storage_root_path()}`")
    runtime_events = read_runtime_events(limit=50)
    if runtime_events:
        runtime_df = pd.DataFrame(runtime_events)
        cols = [c for c in ["timestamp_utc", "level", "event", "message"] if c in runtime_df.columns]
        st.dataframe(runtime_df[cols].iloc[::-1], width="stretch", hide_index=True)
        st.download_button(
            "Download Runtime Log (JSONL)",
            "\n".join(json.dumps(e, default=str) for e in runtime_events),
            file_name="goal_wizard_runtime_events.jsonl",
            mime="application/x-ndjson",
            help=f"Recent entries from {runtime_log_path()}.",
        )
    else:
        st.caption("No runtime events logged yet.")

screen = st.session_state["screen"]

if screen == "welcome":
    st.subheader("Welcome")
    st.write(f"This takes about 2 minutes. You will set goals for {len(METRICS)} monthly metrics.")
    st.button("Start", key="start_button", type="primary", on_click=_go_to, args=("identify",))

elif screen == "identify":
    st.subheader("Identify")
    st.caption("Set your scope and month window.")
    profile = load_profile(default_store())
    errors = st.session_state["identify_errors"]

    region_options = [""] + list(regions.keys())
    if "identify_region" not in st.session_state:
        st.session_state["identify_region"] = profile.last_region if profile.last_region in regions else ""
    if "identify_staff" not in st.session_state:
        st.session_state["identify_staff"] = profile.staff_name

    if locked_region:
        region = locked_region
    else:
        region = st.selectbox(
            "Region",
            region_options,
            key="identify_region",
            format_func=lambda r: r or "Select region",
        )
        if errors.get("region"):
            st.caption(f":red[{errors['region']}]")

    chapters = regions.get(region, [])
    if locked_chapter:
        chapter = locked_chapter
    elif chapters:
        chapter_options = [""] + chapters
        if st.session_state.get("identify_chapter") not in chapter_options:
            st.session_state["identify_chapter"] = profile.last_chapter if profile.last_chapter in chapters else ""
        chapter = st.selectbox(
            "Chapter",
            chapter_options,
            key="identify_chapter",
            format_func=lambda c: c or "Select chapter",
        )
        if errors.get("chapter"):
            st.caption(f":red[{errors['chapter']}]")
    else:
        chapter = ""

    if locked_region or locked_chapter:
        scope_text = f"**{region}**" + (f" / {chapter}" if chapter else "")
        st.info(f"Scope preselected from link: {scope_text}")

    staff_name = st.text_input("Staff name", key="identify_staff", placeholder="Your name").strip()
    if errors.get("staff_name"):
        st.caption(f":red[{errors['staff_name']}]")
    window_choice = st.radio("Month window", WINDOW_OPTIONS, key="identify_window", horizontal=True)

    back_col, next_col = st.columns(2)
    back_col.button("Back", key="identify_back", on_click=_go_to, args=("welcome",))
    if next_col.button("Next", key="identify_next", type="primary"):
        found = _identify_errors(region, chapter, staff_name, chapters, bool(locked_chapter))
        st.session_state["identify_errors"] = found
        if not found:
            _apply_identify(region, chapter, staff_name, window_choice == WINDOW_OPTIONS[0], history_df)
        st.rerun()

elif screen == "goals" and st.session_state["identify_snapshot"] and st.session_state["months"]:
    snapshot = st.session_state["identify_snapshot"]
    months = st.session_state["months"]
    index = min(int(st.session_state["goal_month_index"]), len(months) - 1)
    ref = months[index]
    goals = st.session_state["goals"]

    head_col, clear_col = st.columns([3, 1])
    head_col.subheader(f"Goals for {ref.label}")
    head_col.caption(f"Month {index + 1} of {len(months)} · {snapshot['region']}" + (f" / {snapshot['chapter']}" if snapshot["chapter"] else ""))
    clear_col.button("Clear draft", key="clear_draft", on_click=_on_clear_draft, args=(history_df,))

    for metric in METRICS:
        draft = goals.get(ref.key, {}).get(metric.key, {})
        goal_value = draft.get("goal_value")
        stats = compute_metric_stats(history_df, snapshot["region"], snapshot["chapter"], metric.key, ref.month, ref.year)
        with st.container(border=True):
            title_col, badge_col = st.columns([3, 1])
            title_col.markdown(f"**{metric.label}**", help=metric.description)
            badge_col.markdown(
                f":{VARIABILITY_COLORS[stats.variability]}[{stats.variability}]",
                help=variability_hint(stats.variability),
            )
            if stats.has_history:
                st.caption(
                    f"Avg **{_whole(stats.avg)}** | Range {_whole(stats.min)}-{_whole(stats.max)} ({stats.count_years}y)"
                )
            else:
                st.caption("No history for this month yet. Set a goal that fits your plans.")

            widget_key = _goal_widget_key(ref.key, metric.key)
            if widget_key not in st.session_state:
                st.session_state[widget_key] = _widget_goal_value(goal_value)
            st.number_input(
                f"{metric.label} goal ({metric.unit_label})",
                min_value=int(metric.goal_min),
                step=1,
                key=widget_key,
                on_change=_on_goal_input,
                args=(ref.key, metric.key),
            )

            action_cols = st.columns(2)
            touched = st.session_state["goal_touched"].get(ref.key, {}).get(metric.key, False)
            if not touched and goal_value is not None:
                action_cols[0].button(
                    f"Keep {goal_value}",
                    key=f"keep:{ref.key}:{metric.key}",
                    on_click=_on_goal_button,
                    args=(ref.key, metric.key, goal_value),
                )
            if stats.has_history and goal_value != round_goal(stats.avg):
                action_cols[1].button(
                    f"Use avg ({round_goal(stats.avg)})",
                    key=f"use_avg:{ref.key}:{metric.key}",
                    on_click=_on_goal_button,
                    args=(ref.key, metric.key, round_goal(stats.avg)),
                )

            st.plotly_chart(
                _range_bar_figure(metric, goal_value, stats),
                width="stretch",
                key=f"range:{ref.key}:{metric.key}",
                config={"displayModeBar": False},
            )
            if stats.has_history:
                st.caption(f"Historical band: {_whole(stats.min)}-{_whole(stats.max)}")

            with st.expander("Add reason", expanded=bool(draft.get("reasons"))):
                selected = draft.get("reasons") or []
                reason_cols = st.columns(3)
                for i, reason in enumerate(REASON_OPTIONS):
                    reason_key = _reason_widget_key(ref.key, metric.key, reason)
                    if reason_key not in st.session_state:
                        st.session_state[reason_key] = reason in selected
                    reason_cols[i % 3].checkbox(
                        reason,
                        key=reason_key,
                        on_change=_on_reason_toggle,
                        args=(ref.key, metric.key, reason),
                    )
                if OTHER_REASON in selected:
                    note_key = _note_widget_key(ref.key, metric.key)
                    if note_key not in st.session_state:
                        st.session_state[note_key] = draft.get("note", "")
                    st.text_input(
                        "Other note",
                        key=note_key,
                        max_chars=NOTE_MAX_LENGTH,
                        on_change=_on_note_input,
                        args=(ref.key, metric.key),
                    )

    with st.expander(f"Expand this to see last year's {previous_year_label(ref)} events"):
        past_events = last_year_events(event_rows, snapshot["region"], snapshot["chapter"], ref)
        if not past_events:
            st.caption("No events recorded for this month last year.")
        for event in past_events:
            kind = "Series" if event.events > 1 else "Event"
            st.markdown(f"**{event.event_name}** · {kind}")
            st.caption(
                f"Events: {event.events:g} | New Teens: {event.new_teens:g} | "
                f"Avg Attendance: {event.avg_attendance:g} | Retention Contacts: {event.retention_contacts:g}"
            )
            if event.notes:
                st.caption(event.notes)

    ready = month_ready(st.session_state["goals"], st.session_state["goal_touched"], ref.key)
    back_col, next_col = st.columns(2)
    back_col.button("Back", key="goals_back", on_click=_on_goals_back)
    next_col.button("Next", key="goals_next", type="primary", disabled=not ready, on_click=_on_goals_next)
    if not ready:
        remaining = remaining_goals_to_touch(st.session_state["goals"], st.session_state["goal_touched"], ref.key)
        st.caption(
            f"Next is disabled: interact with all {len(METRICS)} goals and set valid values. Remaining: {remaining}."
        )
    _autosave_draft()

elif screen == "review" and st.session_state["identify_snapshot"]:
    snapshot = st.session_state["identify_snapshot"]
    months = st.session_state["months"]
    created_at = datetime.now().astimezone()
    payload = build_submission_payload(
        submission_id=str(uuid.uuid4()),
        created_at=created_at,
        region=snapshot["region"],
        chapter=snapshot["chapter"],
        staff=snapshot["staff_name"],
        months=months,
        goals=st.session_state["goals"],
    )
    block = build_submission_block(payload, created_at)
    filename = build_submission_filename(payload)
    st.session_state["review_submission_text"] = block.full
    st.session_state["review_receipt_line"] = block.receipt_line
    st.session_state["review_filename"] = filename

    st.subheader("Review & Submit")
    for ref in months:
        st.markdown(f"**{ref.label}**")
        table = pd.DataFrame(
            [
                {
                    "Metric": metric["label"],
                    "Goal": metric["goal_value"],
                    "Reasons": ", ".join(metric["reasons"]),
                    "Note": metric["note"],
                }
                for metric in payload["metrics_by_month"][ref.key]
            ]
        )
        st.dataframe(table, width="stretch", hide_index=True)

    st.caption("Copy the block below into your Teams message or email.")
    st.code(block.full, language=None)
    st.caption("Receipt line")
    st.code(block.receipt_line, language=None)

    dl_col, json_col = st.columns(2)
    dl_col.download_button(
        "Download .txt",
        block.full,
        file_name=filename,
        mime="text/plain",
        on_click=_on_submission_download,
        args=(payload, "text"),
    )
    json_col.download_button(
        "Download JSON",
        json.dumps(payload, indent=2),
        file_name=filename.replace(".txt", ".json"),
        mime="application/json",
        on_click=_on_submission_download,
        args=(payload, "json"),
    )
    links = build_email_links(payload, block.full)
    mail_col, outlook_col = st.columns(2)
    mail_col.link_button("Open in mail app", links["mailto"])
    outlook_col.link_button("Open in Outlook", links["outlook"])

    back_col, restart_col = st.columns(2)
    back_col.button("Back", key="review_back", on_click=_go_to, args=("goals", max(len(months) - 1, 0)))
    restart_col.button("Start another", key="review_restart", on_click=_go_to, args=("identify",))

else:
    _go_to("welcome")
    st.rerun()
