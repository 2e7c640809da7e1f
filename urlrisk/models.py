# models.py
"""
Result records shared by the extractor, the scorer and the API layer.
All records are frozen; every scan produces fresh instances.
"""

from dataclasses import asdict, dataclass, field, fields
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple


class Classification(str, Enum):
    SAFE = "safe"
    SUSPICIOUS = "suspicious"
    MALICIOUS = "malicious"


@dataclass(frozen=True)
class FeatureSet:
    """Closed set of numeric URL features. Flags are 0/1 integers."""

    # size
    url_length: int
    host_length: int
    path_length: int

    # character composition
    num_digits: int
    digits_ratio: float
    longest_digit_run: int
    num_hyphens: int
    num_underscores: int
    num_asterisks: int
    longest_alnum_run: int
    long_alnum_sequence: int

    # structure
    subdomain_present: int
    tld_length: int
    uncommon_tld: int
    high_risk_tld: int
    has_port: int
    uses_https: int

    # suspicious markers
    having_ip: int
    has_at_symbol: int
    double_slash_redirecting: int
    prefix_suffix: int
    https_token: int
    contains_obfuscation_chars: int
    label_mixed_digits_letters: int
    entropy_host: float
    shortening_service: int

    # heuristic proxies
    known_domain: int
    abnormal_url: int
    suspicious_keyword: int

    parse_failed: int = 0

    @classmethod
    def names(cls) -> List[str]:
        return [f.name for f in fields(cls)]

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class ScoreResult:
    url: str
    features: FeatureSet
    classification: Classification
    confidence: float
    risk_factors: Tuple[str, ...]
    safety_factors: Tuple[str, ...]
    threshold: float
    top_features: Tuple[Tuple[str, float], ...]
    risk_percentage: float
    critical: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "url": self.url,
            "classification": self.classification.value,
            "confidence": self.confidence,
            "risk_percentage": self.risk_percentage,
            "critical": self.critical,
            "threshold": self.threshold,
            "risk_factors": list(self.risk_factors),
            "safety_factors": list(self.safety_factors),
            "top_features": [[name, value] for name, value in self.top_features],
            "features": self.features.to_dict(),
        }


@dataclass(frozen=True)
class CorroborationResult:
    """Second opinion returned by an external classifier."""

    classification: Classification
    confidence: float
    category: Optional[str] = None
    reasoning: Tuple[str, ...] = field(default_factory=tuple)
    source: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "classification": self.classification.value,
            "confidence": self.confidence,
            "category": self.category,
            "reasoning": list(self.reasoning),
            "source": self.source,
        }
