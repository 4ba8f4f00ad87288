# config.py
# Exercise session thresholds + settings (your care-team reviewer can tweak these easily)

EXERCISE = {
    # Recovery window before type adjustment (minutes), keyed by intensity
    "recovery_base_minutes": {
        "light": 30,
        "moderate": 60,
        "intense": 120,
    },

    # Local hour from which recovery shows the bedtime snack advisory
    "evening_hour": 18,

    # Long sessions get fuelling advice
    "long_session_minutes": 60,

    # How many tips the banner shows in the pre phase
    "tips_shown": 3,

    # UI refresh cadence (seconds) for the active session view
    "tick_seconds": 1,

    # Planned duration limits accepted by the start form
    "min_duration_minutes": 1,
    "max_duration_minutes": 600,
}

TRIAGE = {
    # Pre-exercise blood glucose (mmol/L) - common T1D exercise guidance, not diagnosis
    "hypo": 4.0,
    "pre_exercise_target": 7.0,
    "high": 15.0,

    # Blood ketones (mmol/L) above which exercise should wait
    "ketones_stop": 1.5,

    # Carbs to suggest before moderate/intense exercise when below target
    "carbs_min_g": 15,
    "carbs_max_g": 20,
}

LLM = {
    "default_base_url": "https://api.groq.com/openai/v1",
    "default_model": "llama-3.3-70b-versatile",
    "temperature": 0.3,
    "tips_count": 3,
}

APP = {
    "title": "Diabeaters - Exercise Coach (Prototype)",
    "disclaimer": (
        "Not medical advice - always follow your care team's guidance. "
        "Does not diagnose, prescribe, or adjust insulin for you. "
        "If you feel unwell or have a hypo you cannot treat, seek medical care."
    ),
    "log_service_name": "diabeaters-exercise",
}
