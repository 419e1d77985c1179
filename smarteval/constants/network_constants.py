"""Network configuration constants for SmartEval."""

import os

DEFAULT_HOST: str = os.getenv("SMARTEVAL_HOST", "0.0.0.0")
DEFAULT_PORT: int = int(os.getenv("SMARTEVAL_PORT", "8000"))
DEFAULT_API_BASE_URL: str = os.getenv("SMARTEVAL_API_BASE_URL", f"http://127.0.0.1:{DEFAULT_PORT}")
FETCH_TIMEOUT_SECONDS: float = float(os.getenv("SMARTEVAL_FETCH_TIMEOUT", "15"))
