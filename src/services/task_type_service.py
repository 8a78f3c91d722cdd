"""Keyword-based task type classification."""

from typing import Final


UNKNOWN_TASK_TYPE: Final = "unknown"

# Order matters: on equal scores the first category listed wins.
TASK_TYPE_KEYWORDS: Final[dict[str, tuple[str, ...]]] = {
    "fluid_check": ("check", "inspect", "verify", "level", "oil", "coolant", "hydraulic", "fluid"),
    "filter_replacement": ("replace", "change", "filter", "element"),
    "visual_inspection": ("inspect", "visual", "check", "exterior", "look", "examine"),
    "lubrication": ("lubricate", "grease", "oil application", "apply lubricant"),
    "cleaning": ("clean", "wash", "flush", "drain", "remove deposits"),
    "adjustment": ("adjust", "tension", "clearance", "alignment", "tighten", "torque"),
    "parts_replacement": ("replace", "change", "renew", "anode", "belt", "hose", "seal", "mount", "diaphragm"),
    "fluid_replacement": ("change", "replace", "refill", "oil", "coolant", "hydraulic"),
    "condition_based": ("lifting", "storage", "winterization", "boat lifting", "as needed", "when necessary"),
}


def classify_task_type(description: str | None) -> str:
    """Pick the category whose keywords appear most often in the description.

    Keywords match as substrings of the lower-cased text. Returns
    ``"unknown"`` when the description is empty or nothing matches.
    """
    if not description:
        return UNKNOWN_TASK_TYPE

    text = description.lower()
    best_type = UNKNOWN_TASK_TYPE
    best_score = 0
    for task_type, keywords in TASK_TYPE_KEYWORDS.items():
        score = sum(1 for keyword in keywords if keyword in text)
        if score > best_score:
            best_type, best_score = task_type, score
    return best_type
