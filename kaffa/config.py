"""
Kaffa Coffee Clock configuration.
All settings via environment variables with sensible defaults.
"""

import os
from pathlib import Path

# --- Paths ---
BASE_DIR = Path(os.getenv("KAFFA_DATA_DIR", "/data"))
DB_PATH = BASE_DIR / "kaffa.db"

# --- Auth ---
API_KEY = os.getenv("KAFFA_API_KEY", "")

# --- Timezone ---
# dateKeys are computed in this zone
TIMEZONE = os.getenv("TZ", "Europe/London")

# --- Logging ---
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

# --- Caffeine model ---
# Linear absorption to peak, then first-order elimination.
# Base absorption window 45 min; milk adds its peak delay on top.
CAFFEINE_HALF_LIFE_HOURS: float = float(os.getenv("CAFFEINE_HALF_LIFE_HOURS", "5.5"))
BASE_ABSORPTION_MINUTES: float = float(os.getenv("BASE_ABSORPTION_MINUTES", "45"))

# Hard cutoff for level computation vs. the shorter arc drawn on the clock.
LEVEL_CUTOFF_HOURS: float = float(os.getenv("LEVEL_CUTOFF_HOURS", "24"))
ARC_HORIZON_HOURS: float = float(os.getenv("ARC_HORIZON_HOURS", "12"))

# --- Science windows ---
CORTISOL_WINDOW_MINUTES: int = int(os.getenv("CORTISOL_WINDOW_MINUTES", "90"))
SLEEP_WINDOW_HOURS: float = float(os.getenv("SLEEP_WINDOW_HOURS", "6"))
DEFAULT_WAKE_UP_TIME = os.getenv("DEFAULT_WAKE_UP_TIME", "07:00")
DEFAULT_BED_TIME = os.getenv("DEFAULT_BED_TIME", "23:00")

# --- Curves ---
CURVE_INTERVAL_MINUTES: int = int(os.getenv("CURVE_INTERVAL_MINUTES", "15"))

# --- Defaults for new entries ---
DEFAULT_MILK = "No Milk"
