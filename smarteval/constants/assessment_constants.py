"""Assessment lifecycle constants shared by the server and the client."""

import os

UNANSWERED: int = -1

# Creation rules
MIN_ASSESSMENT_DURATION_SECONDS: int = 5 * 60
PAST_START_BUFFER_SECONDS: int = 5 * 60
MIN_OPTIONS_PER_QUESTION: int = 2

# Grace period after the window closes during which an in-flight auto-submit is still accepted
SUBMIT_GRACE_PERIOD_SECONDS: int = int(os.getenv("SMARTEVAL_SUBMIT_GRACE_SECONDS", "30"))

# Countdown
TIMER_TICK_INTERVAL_SECONDS: float = 1.0
TIMER_WARNING_MARKS_SECONDS: tuple[int, ...] = (300, 60, 30)

# Submission guard
SUBMIT_RETRY_DELAY_SECONDS: float = float(os.getenv("SMARTEVAL_SUBMIT_RETRY_DELAY", "2"))
SUBMIT_TIMEOUT_SECONDS: float = float(os.getenv("SMARTEVAL_SUBMIT_TIMEOUT", "30"))

# Statistics
SUCCESS_THRESHOLD_PERCENTAGE: float = 70.0
GRADE_THRESHOLDS: tuple[tuple[str, float], ...] = (
    ("A", 90.0),
    ("B", 80.0),
    ("C", 70.0),
    ("D", 60.0),
)
FAILING_GRADE: str = "F"
MAX_ACTIVITY_LEVEL: int = 4
