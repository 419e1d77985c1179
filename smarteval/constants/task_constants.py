"""Task tracker constants."""

import os

DUE_SOON_WINDOW_HOURS: int = int(os.getenv("SMARTEVAL_DUE_SOON_HOURS", "24"))
