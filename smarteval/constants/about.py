"""Static metadata describing SmartEval."""

APP_NAME = "SmartEval"
APP_VERSION = "0.1"
APP_LICENSE = "MIT License"
APP_ABOUT_TEXT = (
    "SmartEval connects students, professors and alumni. Professors schedule timed "
    "multiple-choice assessments, students take them before the window closes, and "
    "results feed the dashboards of both."
)
