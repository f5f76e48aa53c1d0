"""
Aark-tile Verifier - Configuration

Runtime settings come from the environment (and a local .env file).
Anything that feeds the commitment hash is a code constant instead: the
house edge, the hash prefix and the row separator cannot change without
breaking every previously published game.
"""

import logging
import os
from pathlib import Path
from dotenv import load_dotenv

load_dotenv()

BASE_DIR = Path(__file__).parent.parent


# ============================================================
# Verifier Configuration
# ============================================================

class VerifierConfig:

    # --- Game versions ---
    # Only "v1" boards exist today; other tags are still verified but logged.
    DEFAULT_VERSION = os.getenv("TILES_DEFAULT_VERSION", "v1")
    SUPPORTED_VERSIONS = ("v1",)

    # --- Commitment format (fixed) ---
    HASH_PREFIX = "0x"

    # --- Logging ---
    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
    LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"
    LOG_DATEFMT = "%H:%M:%S"

    # --- Web verifier ---
    WEB_HOST = os.getenv("WEB_HOST", "127.0.0.1")
    WEB_PORT = int(os.getenv("PORT", os.getenv("WEB_PORT", "5000")))
    MAX_ROWS = int(os.getenv("TILES_MAX_ROWS", "1000"))
    # Wider rows are verified normally but drawn as a one-line summary
    RENDER_MAX_TILES = int(os.getenv("TILES_RENDER_MAX_TILES", "64"))

    # --- Math report ---
    SIM_ROUNDS = int(os.getenv("TILES_SIM_ROUNDS", "100000"))
    SIM_SEED = int(os.getenv("TILES_SIM_SEED", "42"))

    @classmethod
    def is_supported_version(cls, version: str) -> bool:
        return version in cls.SUPPORTED_VERSIONS

    @classmethod
    def configure_logging(cls, level: str = None) -> None:
        """Root logging setup for the CLI and web entry points."""
        logging.basicConfig(
            level=getattr(logging, (level or cls.LOG_LEVEL).upper(), logging.INFO),
            format=cls.LOG_FORMAT,
            datefmt=cls.LOG_DATEFMT,
        )
