# app/utils/policy.py
from __future__ import annotations
import copy
import logging
import os
from pathlib import Path
from typing import Dict, Optional

import yaml

from promotions.app.core.errors import InvalidTier

logger = logging.getLogger(__name__)

# Where to read the policy file (compose sets POLICY_PATH); defaults to the copy shipped in the package
_DEFAULT_PATH = Path(__file__).resolve().parents[2] / "policies" / "workflow.yaml"
POLICY_PATH = Path(os.getenv("POLICY_PATH", str(_DEFAULT_PATH)))

DEFAULT_POLICY: Dict = {
    # reject / escalate / cancel / non-credit completion
    "min_justification_chars": 30,
    "default_duration_months": {
        "tier_a": 9,
        "tier_b": 6,
        "training": 3,
    },
    "max_duration_months": 24,
}

# cache in memory
_POLICY: Optional[dict] = None


# -------------------------- loading --------------------------

def _merge(base: dict, override: dict) -> dict:
    out = copy.deepcopy(base)
    for k, v in (override or {}).items():
        if isinstance(v, dict) and isinstance(out.get(k), dict):
            out[k] = _merge(out[k], v)
        else:
            out[k] = v
    return out

def _load_policy_from_file() -> dict:
    if POLICY_PATH.exists():
        with open(POLICY_PATH, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
        if not isinstance(data, dict):
            logger.warning("[POLICY] %s is not a mapping; using defaults", POLICY_PATH)
            data = {}
        return _merge(DEFAULT_POLICY, data)
    return copy.deepcopy(DEFAULT_POLICY)

def get_policy() -> dict:
    global _POLICY
    if _POLICY is None:
        _POLICY = _load_policy_from_file()
    return _POLICY

def reload_policy() -> dict:
    global _POLICY
    _POLICY = _load_policy_from_file()
    logger.info("[POLICY] reloaded from %s", POLICY_PATH)
    return _POLICY


# -------------------------- accessors --------------------------

def min_justification_chars() -> int:
    return int(get_policy().get("min_justification_chars", 30))

def default_duration_months(tier: str) -> int:
    table = get_policy().get("default_duration_months") or {}
    if tier not in table:
        raise InvalidTier(f"No default duration configured for tier '{tier}'", tier=tier)
    return int(table[tier])

def max_duration_months() -> int:
    return int(get_policy().get("max_duration_months", 24))
