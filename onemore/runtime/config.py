from __future__ import annotations
import logging
import os
from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()

DB_PATH = os.getenv("ONEMORE_DB_PATH", "./onemore.db")
TICK_MS = int(os.getenv("ONEMORE_TICK_MS", "200"))  # detection cadence for simulated sessions
LOG_LEVEL = os.getenv("ONEMORE_LOG_LEVEL", "INFO")


def setup_logging(level: str = LOG_LEVEL):
    logging.basicConfig(
        level=getattr(logging, str(level).upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
