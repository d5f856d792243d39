"""Intent classification for free-text requests."""

from reminderbot.core.routing.classifier import (
    HeuristicClassifier,
    Intent,
    IntentClassifier,
    IntentResult,
    LLMIntentClassifier,
)

__all__ = [
    "HeuristicClassifier",
    "Intent",
    "IntentClassifier",
    "IntentResult",
    "LLMIntentClassifier",
]
