"""Constants for the step-plan engine."""

# Models the planner knows about (mirrors the IDE's model picker)
AVAILABLE_MODELS = [
    {"id": "gemini", "name": "Google Gemini", "available": True},
    {"id": "mistral", "name": "Mistral AI", "available": True},
    {"id": "groq", "name": "Groq", "available": True},
    {"id": "ollama", "name": "Ollama (Local)", "available": True, "endpoint": "127.0.0.1:9632"},
]

DEFAULT_MODEL = "gemini"

# Pause between steps during run-all so reporters can redraw.
# JUST_BUILT_STEP_DELAY_S overrides it through config.load_config.
DEFAULT_STEP_DELAY_S = 3.0

DEFAULT_REPORTS_DIR = "execution/reports"

CYBERSECURITY_PROMPT = (
    "\n\nYou are operating in cybersecurity mode. Focus on defensive security practices, "
    "ethical hacking techniques, and secure coding patterns. Always prioritize security "
    "best practices and explain potential vulnerabilities."
)

# Comma-separated string for CLI help
AVAILABLE_MODELS_CSV = ",".join(m["id"] for m in AVAILABLE_MODELS)


def get_model(model_id: str):
    """Return the model entry for model_id, or None if unknown."""
    for model in AVAILABLE_MODELS:
        if model["id"] == model_id:
            return model
    return None
