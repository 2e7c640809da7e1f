# policy.py
"""
Risk policy: check weights, classification thresholds and the static
reference lists the extractor matches against.

The defaults can be overridden without code changes by pointing
URLRISK_POLICY_PATH at a JSON file, e.g.:

    {
      "suspicious_threshold": 40,
      "malicious_threshold": 65,
      "weights": {"having_ip": 30, "suspicious_keyword": 0}
    }

Keys that are absent keep their default value.
"""

import json
import logging
import os
from dataclasses import dataclass, field, fields
from types import MappingProxyType
from typing import Any, Dict, Mapping, Optional

logger = logging.getLogger("policy")

POLICY_PATH_ENV = "URLRISK_POLICY_PATH"

# Reference data (process-wide, read-only)
SHORTENING_SERVICES = frozenset({
    "bit.ly", "tinyurl.com", "goo.gl", "t.co", "ow.ly", "is.gd", "buff.ly",
    "tiny.cc", "rebrand.ly", "cutt.ly", "shorturl.at", "rb.gy",
})

COMMON_TLDS = frozenset({
    "com", "org", "net", "edu", "gov", "mil", "int", "co", "io", "ai",
})

HIGH_RISK_TLDS = frozenset({
    "zip", "xyz", "top", "monster", "quest", "gq", "cf", "tk", "ml", "work",
    "live", "kim", "icu", "buzz", "click", "casa", "rest", "mom", "pw",
})

# Substring proxy for an established domain; not a reputation check.
KNOWN_BRANDS = frozenset({
    "google", "facebook", "amazon", "microsoft", "apple", "github",
    "stackoverflow",
})

SUSPICIOUS_KEYWORDS = frozenset({
    "login", "verify", "secure", "account", "update", "confirm", "free",
    "bonus", "prize", "click",
})

OBFUSCATION_CHARS = frozenset("*[]{}\\~|")

# Evaluation order of the weighted checks (and their default ceilings).
DEFAULT_WEIGHTS = {
    "having_ip": 25.0,
    "long_url": 4.0,
    "shortening_service": 13.0,
    "has_at_symbol": 14.0,
    "double_slash_redirecting": 5.0,
    "prefix_suffix": 2.5,
    "subdomain_present": 3.0,
    "missing_https": 25.0,
    "unknown_domain": 10.0,
    "has_port": 3.0,
    "https_token": 14.0,
    "abnormal_url": 2.5,
    "high_entropy_host": 4.0,
    "long_digit_run": 2.5,
    "label_mixed_digits_letters": 2.5,
    "uncommon_tld": 2.0,
    "suspicious_keyword": 3.0,
    "parse_failed": 3.0,
}

CHECK_ORDER = tuple(DEFAULT_WEIGHTS)


class PolicyError(ValueError):
    """Raised when a policy override is malformed."""


def _frozen_weights(weights: Mapping[str, float]) -> Mapping[str, float]:
    return MappingProxyType({name: float(weights[name]) for name in CHECK_ORDER})


@dataclass(frozen=True)
class RiskPolicy:
    weights: Mapping[str, float] = field(default_factory=lambda: _frozen_weights(DEFAULT_WEIGHTS))
    suspicious_threshold: float = 35.0
    malicious_threshold: float = 60.0
    critical_confidence: float = 95.0
    critical_digit_run: int = 7
    long_digit_run: int = 4
    long_url_length: int = 75
    entropy_threshold: float = 4.5
    uncommon_tld_share: float = 0.5
    top_features: int = 5

    def __post_init__(self):
        merged = dict(DEFAULT_WEIGHTS)
        unknown = set(self.weights) - set(CHECK_ORDER)
        if unknown:
            raise PolicyError(f"unknown checks in weights: {sorted(unknown)}")
        merged.update(self.weights)
        for name, value in merged.items():
            if float(value) < 0:
                raise PolicyError(f"weight for {name} must be >= 0")
        if not any(float(v) > 0 for v in merged.values()):
            raise PolicyError("at least one weight must be positive")
        if not (0.0 <= self.suspicious_threshold < self.malicious_threshold <= 100.0):
            raise PolicyError("thresholds must satisfy 0 <= suspicious < malicious <= 100")
        if not (0.0 <= self.uncommon_tld_share <= 1.0):
            raise PolicyError("uncommon_tld_share must be within 0..1")
        if self.top_features < 0:
            raise PolicyError("top_features must be >= 0")
        # frozen dataclass: bypass __setattr__ to store the read-only view
        object.__setattr__(self, "weights", _frozen_weights(merged))

    @property
    def max_score(self) -> float:
        return sum(self.weights.values())

    def to_dict(self) -> Dict[str, Any]:
        data = {f.name: getattr(self, f.name) for f in fields(self)}
        data["weights"] = dict(self.weights)
        return data


DEFAULT_POLICY = RiskPolicy()


def policy_from_dict(data: Mapping[str, Any]) -> RiskPolicy:
    if not isinstance(data, Mapping):
        raise PolicyError("policy must be a JSON object")
    known = {f.name for f in fields(RiskPolicy)}
    unknown = set(data) - known
    if unknown:
        raise PolicyError(f"unknown policy keys: {sorted(unknown)}")
    weights = data.get("weights", {})
    if not isinstance(weights, Mapping):
        raise PolicyError("'weights' must be an object")
    try:
        return RiskPolicy(**data)
    except TypeError as e:
        raise PolicyError(str(e)) from e


def load_policy(path: Optional[str] = None) -> RiskPolicy:
    """Load a policy override from `path` (or URLRISK_POLICY_PATH).

    Returns DEFAULT_POLICY when no path is configured.
    """
    path = path or os.getenv(POLICY_PATH_ENV)
    if not path:
        return DEFAULT_POLICY
    logger.info("Loading risk policy from %s", path)
    try:
        with open(path, "r", encoding="utf-8") as fh:
            data = json.load(fh)
    except (OSError, json.JSONDecodeError) as e:
        raise PolicyError(f"cannot read policy file {path}: {e}") from e
    return policy_from_dict(data)
