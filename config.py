"""
config.py
---------
CampusGuide - Campus Directory Assistant - Runtime configuration
-----------------------------------------------------------------
Reads every tunable constant from the environment (a local .env file is
loaded first) and exposes them as a validated BudgetPolicy plus a few
service-level constants.

The request budget mirrors the conversational platform's webhook limit
(about 5 s); thresholds and margins are policy choices and can be tuned
per deployment without code changes.

Env vars:
    REQUEST_BUDGET_MS            Total wall-clock budget per query.
    FULL_TIER_THRESHOLD_MS       Minimum remaining budget for the FULL tier.
    QUICK_TIER_THRESHOLD_MS      Minimum remaining budget for the QUICK tier.
    FULL_SAFETY_MARGIN_MS        Subtracted from the FULL generation allowance.
    QUICK_SAFETY_MARGIN_MS       Subtracted from the QUICK generation allowance.
    CORRECTOR_CAP_MS             Upper bound for the name-correction call.
    RESPONSE_RESERVE_MS          Budget held back for the response stage.
    CORRECTION_SAFETY_MARGIN_MS  Subtracted from the correction allowance.
    STORE_SAFETY_MARGIN_MS       Subtracted from each directory store call.
    FALLBACK_TIMEOUT_MS          Timeout for the out-of-scope refusal call.
    LLM_MODEL                    Generative backend model name.
    DIRECTORY_DB_PATH            SQLite file backing the directory store.

Project: CampusGuide - Campus Directory Assistant
"""

import os
from pathlib import Path

from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict, Field, model_validator

load_dotenv()

# ── Service constants ─────────────────────────────────────────────────────────

VERSION = "1.0.0"
SERVICE_NAME = "CampusGuide Campus Directory Assistant"

LLM_MODEL = os.getenv("LLM_MODEL", "claude-haiku-4-5")
LLM_MAX_TOKENS = int(os.getenv("LLM_MAX_TOKENS", "512"))
FALLBACK_TIMEOUT_MS = int(os.getenv("FALLBACK_TIMEOUT_MS", "3000"))

DIRECTORY_DB_PATH = Path(
    os.getenv(
        "DIRECTORY_DB_PATH",
        str(Path(__file__).parent / "directory.sqlite"),
    )
)
FACULTY_SEED_PATH = Path(__file__).parent / "mock_data" / "faculty.json"


# ── Budget policy ─────────────────────────────────────────────────────────────

class BudgetPolicy(BaseModel):
    """
    Time-budget policy for one directory query. All values are milliseconds.

    Validation rejects negative values and thresholds that are not ordered
    (quick < full <= total), since tier selection depends on that ordering.
    """

    model_config = ConfigDict(frozen=True)

    total_ms:                   int = Field(default=4700, gt=0)
    full_threshold_ms:          int = Field(default=3000, ge=0)
    quick_threshold_ms:         int = Field(default=1500, ge=0)
    full_safety_margin_ms:      int = Field(default=500, ge=0)
    quick_safety_margin_ms:     int = Field(default=300, ge=0)
    corrector_cap_ms:           int = Field(default=2500, ge=0)
    response_reserve_ms:        int = Field(default=1500, ge=0)
    correction_safety_margin_ms: int = Field(default=100, ge=0)
    store_safety_margin_ms:     int = Field(default=50, ge=0)

    @model_validator(mode="after")
    def check_threshold_order(self) -> "BudgetPolicy":
        if self.quick_threshold_ms >= self.full_threshold_ms:
            raise ValueError(
                f"quick_threshold_ms ({self.quick_threshold_ms}) must be below "
                f"full_threshold_ms ({self.full_threshold_ms})"
            )
        if self.full_threshold_ms > self.total_ms:
            raise ValueError(
                f"full_threshold_ms ({self.full_threshold_ms}) exceeds total_ms ({self.total_ms})"
            )
        return self

    @classmethod
    def from_env(cls) -> "BudgetPolicy":
        """Build a policy from environment variables, falling back to the field defaults."""
        env_map = {
            "total_ms": "REQUEST_BUDGET_MS",
            "full_threshold_ms": "FULL_TIER_THRESHOLD_MS",
            "quick_threshold_ms": "QUICK_TIER_THRESHOLD_MS",
            "full_safety_margin_ms": "FULL_SAFETY_MARGIN_MS",
            "quick_safety_margin_ms": "QUICK_SAFETY_MARGIN_MS",
            "corrector_cap_ms": "CORRECTOR_CAP_MS",
            "response_reserve_ms": "RESPONSE_RESERVE_MS",
            "correction_safety_margin_ms": "CORRECTION_SAFETY_MARGIN_MS",
            "store_safety_margin_ms": "STORE_SAFETY_MARGIN_MS",
        }
        values = {}
        for field_name, env_var in env_map.items():
            raw = os.getenv(env_var)
            if raw is not None and raw.strip():
                values[field_name] = int(raw)
        return cls(**values)
