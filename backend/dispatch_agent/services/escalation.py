import re

EMERGENCY_KEYWORDS = [
    "emergency",
    "blowout",
    "accident",
    "crash",
    "medical",
    "chest pain",
    "ambulance",
    "bleeding",
    "injured",
    "i need help",
    "pulling over",
    "smoke",
    "fire",
]

# Whole words only: "fire" must not match "fired" or "firewood"
_KEYWORD_PATTERN = re.compile(r"\b(?:" + "|".join(re.escape(k) for k in EMERGENCY_KEYWORDS) + r")\b")


def detect_emergency_keywords(text: str) -> bool:
    return _KEYWORD_PATTERN.search((text or "").lower()) is not None
