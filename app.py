import os
import re
import hashlib
from datetime import datetime, timedelta
from typing import Optional

import streamlit as st
import matplotlib.pyplot as plt

from config import APP, EXERCISE, LLM, TRIAGE
from logging_config import configure_logging
from exercise_bank import (
    EXERCISE_LABELS,
    INTENSITY_LABELS,
    PHASE_LABELS,
    checklist_items,
    get_pre_exercise_tips,
    get_type_config,
    hypo_help_steps,
)
from models import ExerciseSession, ExerciseType, Intensity, Phase
from patterns import outcomes_frame, pattern_caption, pattern_trend
from session import (
    ExerciseSessionController,
    ExerciseSessionError,
    active_advisories,
    format_elapsed,
    format_remaining,
    recovery_advisories,
)
from storage import SessionStore, init_db
from triage import triage_pre_exercise
from llm import coach_on_outcome

st.set_page_config(page_title=APP["title"], layout="wide")

# Load Streamlit Secrets → environment variables (for Groq + logging)
for _key, _default in (
    ("GROQ_API_KEY", ""),
    ("GROQ_BASE_URL", LLM["default_base_url"]),
    ("GROQ_MODEL", LLM["default_model"]),
    ("LOG_LEVEL", "INFO"),
):
    os.environ[_key] = str(st.secrets.get(_key, os.getenv(_key, _default)))

configure_logging()
init_db()

# -------------------------
# Header + Disclaimer
# -------------------------
st.title(APP["title"])
st.info(APP["disclaimer"])

# -------------------------
# Quick Access Login (Name + Phone)
# -------------------------
def normalize_phone(phone: str) -> str:
    phone = phone.strip()
    phone = re.sub(r"[^\d+]", "", phone)
    return phone

def user_key_from_phone(phone: str) -> str:
    salt = st.secrets.get("PHONE_SALT", "dev-salt-change-me")
    return hashlib.sha256((salt + phone).encode("utf-8")).hexdigest()

def last4(phone: str) -> str:
    digits = re.sub(r"\D", "", phone)
    return digits[-4:] if len(digits) >= 4 else digits

if "user_key" not in st.session_state:
    st.subheader("Quick Access Login")
    st.caption("Enter phone with country code, e.g., +44..., +1...")

    full_name = st.text_input("Full Name")
    phone = st.text_input("Phone Number")

    if st.button("Continue"):
        phone_n = normalize_phone(phone)

        if not full_name.strip():
            st.error("Enter your full name.")
            st.stop()
        if not phone_n.startswith("+") or len(phone_n) < 8:
            st.error("Enter a valid phone number with +country code.")
            st.stop()

        user_key = user_key_from_phone(phone_n)
        st.session_state["user_key"] = user_key
        st.session_state["display_name"] = full_name.strip()

        store = SessionStore(user_key)
        if not store.get_profile():
            store.upsert_profile({"full_name": full_name.strip(), "phone_last4": last4(phone_n)})

        st.rerun()

    st.stop()

st.sidebar.success(f"Logged in: {st.session_state.get('display_name', 'User')}")
if st.sidebar.button("Logout"):
    for k in ["user_key", "display_name", "ending_session", "coach_tips"]:
        st.session_state.pop(k, None)
    st.rerun()

store = SessionStore(st.session_state["user_key"])
controller = ExerciseSessionController(store)

tabs = st.tabs(["1) Exercise", "2) Outcomes & Patterns", "3) Routines", "4) Profile"])

# -------------------------
# Helpers
# -------------------------
TREND_ICONS = {"down": "↘", "up": "↗", "flat": "→"}
BG_RESPONSE_OPTIONS = {"Not sure": None, "Dropped": "dropped", "Stayed stable": "stable", "Rose": "rose"}
SEVERITY_OPTIONS = {"A little": "a_little", "A lot": "a_lot"}


def _apply(action, *args) -> Optional[ExerciseSession]:
    """Run a controller action, turning lifecycle errors into a warning."""
    try:
        return action(*args)
    except ExerciseSessionError as exc:
        st.warning(str(exc))
        return None


def _show_pattern(session: ExerciseSession) -> None:
    pattern = store.get_exercise_patterns(session.exercise_type, session.intensity)
    if pattern.total_sessions > 0:
        st.markdown(f"{TREND_ICONS[pattern_trend(pattern)]} **{pattern.avg_pattern}**")
        st.caption(pattern_caption(pattern))


@st.dialog("How did it go?")
def outcome_dialog(ended: ExerciseSession) -> None:
    st.caption(f"Quick feedback on {ended.name} helps build your exercise patterns. This is optional.")

    response_label = st.radio("How did your BG respond?", list(BG_RESPONSE_OPTIONS), horizontal=True)
    response = BG_RESPONSE_OPTIONS[response_label]
    severity = None
    if response in ("dropped", "rose"):
        severity = SEVERITY_OPTIONS[st.radio("How much?", list(SEVERITY_OPTIONS), horizontal=True)]
    felt_hypo = st.radio("Did you experience a hypo?", ["No", "Yes"], horizontal=True) == "Yes"
    notes = st.text_area("Notes (optional)", placeholder="e.g., Ate a banana before, felt good throughout...")

    c1, c2 = st.columns(2)
    if c1.button("Skip", use_container_width=True):
        st.session_state.pop("ending_session", None)
        st.rerun()
    if c2.button("Save Feedback", type="primary", use_container_width=True):
        outcome = controller.record_outcome(ended, response, severity, felt_hypo, notes)
        if outcome:
            pattern = store.get_exercise_patterns(outcome.exercise_type, outcome.intensity)
            st.session_state["coach_tips"] = coach_on_outcome(outcome, pattern)
        st.session_state.pop("ending_session", None)
        st.rerun()


def _render_pre(session: ExerciseSession, is_pump: bool) -> None:
    st.markdown("**Pre-exercise checklist**")
    for key, label in checklist_items(session.exercise_type, is_pump):
        current = getattr(session.pre_checklist, key)
        if st.checkbox(label, value=current) != current:
            _apply(controller.toggle_checklist_item, key)
            st.rerun(scope="fragment")

    for tip in get_pre_exercise_tips(session, is_pump)[:EXERCISE["tips_shown"]]:
        st.caption(f"💧 {tip}")

    bg = st.number_input("BG right now (mmol/L, optional)", min_value=0.0, max_value=33.3, value=0.0, step=0.1)
    if bg > 0:
        level, flags = triage_pre_exercise(bg, session.intensity)
        show = {"GREEN": st.success, "AMBER": st.warning, "RED": st.error}[level]
        show(f"{level}: " + (" ".join(flags) if flags else "Good to go."))

    c1, c2 = st.columns(2)
    if c1.button("▶ Start Exercise", type="primary", use_container_width=True):
        _apply(controller.start)
        st.rerun(scope="fragment")
    if c2.button("Cancel", use_container_width=True):
        _apply(controller.cancel)
        st.rerun()


def _hypo_help(label: str) -> None:
    with st.popover(f"⚡ {label}"):
        st.markdown("**Treat a hypo now**")
        for i, step in enumerate(hypo_help_steps(), 1):
            st.write(f"{i}. {step}")


def _render_active(session: ExerciseSession, result) -> None:
    st.markdown(f"### ⏱ {format_elapsed(result.elapsed_ms)}")
    st.progress(int(result.progress))

    for reminder in active_advisories(session):
        st.caption(f"⚠ {reminder}")

    if result.show_mid_check:
        with st.container(border=True):
            st.warning(get_type_config(session.exercise_type).mid_check_message)
            if st.button("Feeling fine"):
                _apply(controller.dismiss_mid_check)
                st.rerun(scope="fragment")
            _hypo_help("Need help")

    c1, c2 = st.columns(2)
    if c1.button("■ Finish Exercise", type="primary", use_container_width=True):
        _apply(controller.finish)
        st.rerun(scope="fragment")
    with c2:
        _hypo_help("Hypo Help")


def _render_recovery(session: ExerciseSession, result) -> None:
    st.caption(
        f"Recovery window active — BG may continue to change for the next {format_remaining(result.remaining_ms)}"
    )
    for advisory in recovery_advisories(session, datetime.now()):
        st.caption(f"• {advisory}")

    c1, c2, c3 = st.columns(3)
    ended = None
    if c1.button("✓ End Recovery", type="primary", use_container_width=True):
        ended = _apply(controller.end)
    if c2.button("Skip", use_container_width=True):
        ended = _apply(controller.skip)
    with c3:
        _hypo_help("Hypo")
    if ended:
        st.session_state["ending_session"] = ended
        st.rerun()


@st.fragment(run_every=timedelta(seconds=EXERCISE["tick_seconds"]))
def exercise_banner() -> None:
    result = controller.tick()
    if result.ended:
        st.session_state["ending_session"] = result.ended
        st.rerun()
    session = result.session
    if session is None:
        # cleared elsewhere (another tab), fall back to the start form
        st.rerun()

    header = f"**{session.name}** · {PHASE_LABELS[session.phase]}"
    if session.phase == Phase.RECOVERY:
        header += f" · {format_remaining(result.remaining_ms)} left"
    st.markdown(header)
    st.caption(
        f"{EXERCISE_LABELS[session.exercise_type]} · {session.duration_minutes} min · "
        f"{INTENSITY_LABELS[session.intensity]}"
    )
    _show_pattern(session)

    is_pump = store.is_pump()
    if session.phase == Phase.PRE:
        _render_pre(session, is_pump)
    elif session.phase == Phase.ACTIVE:
        _render_active(session, result)
    else:
        _render_recovery(session, result)

    st.caption("⚠ Not medical advice — always follow your care team's guidance")


def start_form() -> None:
    with st.form("start_exercise"):
        exercise_type = st.selectbox(
            "Exercise type", list(ExerciseType), format_func=lambda t: EXERCISE_LABELS[t]
        )
        intensity = st.selectbox(
            "Intensity", list(Intensity), index=1, format_func=lambda i: INTENSITY_LABELS[i]
        )
        duration = st.number_input(
            "Planned duration (minutes)",
            min_value=EXERCISE["min_duration_minutes"],
            max_value=EXERCISE["max_duration_minutes"],
            value=30,
            step=5,
        )
        name = st.text_input("Name (optional)", placeholder="e.g., Morning run")
        if st.form_submit_button("Plan exercise"):
            try:
                controller.create(exercise_type, intensity, int(duration), name)
            except ValueError as exc:
                st.error(str(exc))
            else:
                st.rerun()

# -------------------------
# 1) Exercise
# -------------------------
with tabs[0]:
    st.subheader("Exercise session")

    if st.session_state.get("ending_session"):
        outcome_dialog(st.session_state["ending_session"])

    tips = st.session_state.get("coach_tips")
    if tips:
        st.success("Thanks — saved. A few ideas for next time:")
        for t in tips:
            st.write("•", t)
        if st.button("Dismiss tips"):
            st.session_state.pop("coach_tips", None)
            st.rerun()

    if controller.session is None:
        start_form()
    else:
        exercise_banner()

# -------------------------
# 2) Outcomes & Patterns
# -------------------------
with tabs[1]:
    st.subheader("How exercise affects your BG (non-diagnostic)")

    c1, c2 = st.columns(2)
    with c1:
        p_type = st.selectbox(
            "Exercise type", list(ExerciseType), format_func=lambda t: EXERCISE_LABELS[t], key="pattern_type"
        )
    with c2:
        p_intensity = st.selectbox(
            "Intensity", list(Intensity), index=1, format_func=lambda i: INTENSITY_LABELS[i], key="pattern_intensity"
        )

    pattern = store.get_exercise_patterns(p_type, p_intensity)
    if pattern.total_sessions == 0:
        st.info("No outcomes recorded for this combination yet.")
    else:
        st.write(f"{TREND_ICONS[pattern_trend(pattern)]} **{pattern.avg_pattern}**")
        st.caption(pattern_caption(pattern))

        fig = plt.figure()
        plt.bar(
            ["Dropped", "Stable", "Rose"],
            [pattern.dropped_count, pattern.stable_count, pattern.rose_count],
        )
        plt.ylabel("Sessions")
        st.pyplot(fig)

    df = outcomes_frame(store.fetch_exercise_outcomes())
    if df.empty:
        st.info("No exercise outcomes yet.")
    else:
        st.write("### All outcomes")
        st.dataframe(df, use_container_width=True)

# -------------------------
# 3) Routines
# -------------------------
with tabs[2]:
    st.subheader("Saved exercises (quick start)")

    with st.form("add_routine", clear_on_submit=True):
        r_name = st.text_input("Name", placeholder="e.g., Lunchtime walk")
        r_type = st.selectbox("Type", list(ExerciseType), format_func=lambda t: EXERCISE_LABELS[t])
        r_intensity = st.selectbox("Intensity", list(Intensity), index=1, format_func=lambda i: INTENSITY_LABELS[i])
        r_duration = st.number_input(
            "Duration (minutes)",
            min_value=EXERCISE["min_duration_minutes"],
            max_value=EXERCISE["max_duration_minutes"],
            value=30,
            step=5,
        )
        if st.form_submit_button("Save routine"):
            store.add_exercise_routine(r_name, r_type, r_intensity, int(r_duration))
            st.success("Saved ✅")

    routines = store.get_recent_routines(limit=10)
    if not routines:
        st.info("No saved exercises yet.")
    for routine in routines:
        c1, c2, c3 = st.columns([4, 1, 1])
        with c1:
            st.write(f"**{routine.name}** · {routine.duration_minutes} min · {routine.intensity.value}")
            if routine.times_used:
                st.caption(f"Used {routine.times_used}×")
        if c2.button("Start", key=f"routine_start_{routine.id}"):
            used = store.use_exercise_routine(routine.id)
            if used:
                controller.create(used.exercise_type, used.intensity, used.duration_minutes, used.name)
            st.rerun()
        if c3.button("Delete", key=f"routine_delete_{routine.id}"):
            store.delete_exercise_routine(routine.id)
            st.rerun()

# -------------------------
# 4) Profile
# -------------------------
with tabs[3]:
    st.subheader("Profile")

    profile = store.get_profile() or {}
    name = st.text_input("Name", value=profile.get("full_name") or "")

    diabetes_options = ["Type 1", "Type 2", "Other / not sure"]
    saved_type = profile.get("diabetes_type") or "Type 1"
    diabetes_type = st.selectbox(
        "Diabetes type",
        diabetes_options,
        index=diabetes_options.index(saved_type) if saved_type in diabetes_options else 0,
    )

    delivery_options = {"Injections (MDI)": "injections", "Insulin pump": "pump"}
    saved_delivery = profile.get("insulin_delivery_method") or "injections"
    delivery_label = st.radio(
        "How do you take insulin?",
        list(delivery_options),
        index=list(delivery_options.values()).index(saved_delivery) if saved_delivery in delivery_options.values() else 0,
        horizontal=True,
    )

    if st.button("Save profile"):
        store.upsert_profile({
            "full_name": name.strip(),
            "diabetes_type": diabetes_type,
            "insulin_delivery_method": delivery_options[delivery_label],
        })
        st.success("Saved ✅")

    st.caption(f"Pre-exercise BG hints: low < {TRIAGE['hypo']} • aim ≥ {TRIAGE['pre_exercise_target']} • high > {TRIAGE['high']} (mmol/L)")
