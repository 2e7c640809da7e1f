"""
heuristics.py

Explainable weighted risk model over an extracted FeatureSet.

Public functions:
    score(features, policy=None) -> ScoreResult
    analyze_url(url, policy=None) -> ScoreResult

Example:
    >>> from urlrisk.app.heuristics import analyze_url
    >>> analyze_url("http://192.168.1.10/login").classification
    <Classification.SUSPICIOUS: 'suspicious'>

Every weighted check adds its ceiling to the maximum score whether it fires
or not, so the final percentage is comparable across URLs. A small set of
critical patterns bypasses the weighted model entirely.
"""

from typing import Callable, List, NamedTuple, Optional, Tuple

from ..extract_features import extract_features
from ..models import Classification, FeatureSet, ScoreResult
from ..policy import DEFAULT_POLICY, RiskPolicy


class CheckOutcome(NamedTuple):
    # share of the check's ceiling that fired, 0..1
    fraction: float
    risk: Optional[str] = None
    safety: Optional[str] = None


def _having_ip(f: FeatureSet, p: RiskPolicy) -> CheckOutcome:
    if f.having_ip:
        return CheckOutcome(1.0, risk="IP address in URL (high risk)")
    return CheckOutcome(0.0, safety="No IP address detected")


def _long_url(f: FeatureSet, p: RiskPolicy) -> CheckOutcome:
    if f.url_length > p.long_url_length:
        return CheckOutcome(1.0, risk="Unusually long URL")
    return CheckOutcome(0.0, safety="Normal URL length")


def _shortening_service(f: FeatureSet, p: RiskPolicy) -> CheckOutcome:
    if f.shortening_service:
        return CheckOutcome(1.0, risk="URL shortening service detected")
    return CheckOutcome(0.0, safety="Direct URL (not shortened)")


def _has_at_symbol(f: FeatureSet, p: RiskPolicy) -> CheckOutcome:
    if f.has_at_symbol:
        return CheckOutcome(1.0, risk="@ symbol in URL (phishing indicator)")
    return CheckOutcome(0.0)


def _double_slash(f: FeatureSet, p: RiskPolicy) -> CheckOutcome:
    if f.double_slash_redirecting:
        return CheckOutcome(1.0, risk="Suspicious redirect pattern")
    return CheckOutcome(0.0)


def _prefix_suffix(f: FeatureSet, p: RiskPolicy) -> CheckOutcome:
    if f.prefix_suffix:
        return CheckOutcome(1.0, risk="Hyphen in domain name")
    return CheckOutcome(0.0)


def _subdomain_present(f: FeatureSet, p: RiskPolicy) -> CheckOutcome:
    if f.subdomain_present:
        return CheckOutcome(1.0, risk="Multiple subdomains detected")
    return CheckOutcome(0.0)


def _missing_https(f: FeatureSet, p: RiskPolicy) -> CheckOutcome:
    if not f.uses_https:
        return CheckOutcome(1.0, risk="No HTTPS encryption")
    return CheckOutcome(0.0, safety="HTTPS encryption enabled")


def _unknown_domain(f: FeatureSet, p: RiskPolicy) -> CheckOutcome:
    if not f.known_domain:
        return CheckOutcome(1.0, risk="Unknown or new domain")
    return CheckOutcome(0.0, safety="Established domain")


def _has_port(f: FeatureSet, p: RiskPolicy) -> CheckOutcome:
    if f.has_port:
        return CheckOutcome(1.0, risk="Non-standard port detected")
    return CheckOutcome(0.0)


def _https_token(f: FeatureSet, p: RiskPolicy) -> CheckOutcome:
    if f.https_token:
        return CheckOutcome(1.0, risk="HTTPS in domain (deceptive)")
    return CheckOutcome(0.0)


def _abnormal_url(f: FeatureSet, p: RiskPolicy) -> CheckOutcome:
    if f.abnormal_url:
        return CheckOutcome(1.0, risk="Abnormal URL structure")
    return CheckOutcome(0.0)


def _high_entropy_host(f: FeatureSet, p: RiskPolicy) -> CheckOutcome:
    if f.entropy_host > p.entropy_threshold:
        return CheckOutcome(1.0, risk="High entropy in hostname (randomized characters)")
    return CheckOutcome(0.0)


def _long_digit_run(f: FeatureSet, p: RiskPolicy) -> CheckOutcome:
    if f.longest_digit_run >= p.long_digit_run:
        return CheckOutcome(1.0, risk=f"Long digit sequence detected ({f.longest_digit_run} digits)")
    return CheckOutcome(0.0)


def _mixed_label(f: FeatureSet, p: RiskPolicy) -> CheckOutcome:
    if f.label_mixed_digits_letters:
        return CheckOutcome(1.0, risk="Mixed alphanumeric patterns in domain labels")
    return CheckOutcome(0.0)


def _uncommon_tld(f: FeatureSet, p: RiskPolicy) -> CheckOutcome:
    if f.high_risk_tld:
        return CheckOutcome(1.0, risk="High-risk top-level domain")
    if f.uncommon_tld:
        return CheckOutcome(p.uncommon_tld_share, risk="Uncommon top-level domain")
    return CheckOutcome(0.0, safety="Common top-level domain")


def _suspicious_keyword(f: FeatureSet, p: RiskPolicy) -> CheckOutcome:
    if f.suspicious_keyword:
        return CheckOutcome(1.0, risk="Suspicious keyword in URL")
    return CheckOutcome(0.0)


def _parse_failed(f: FeatureSet, p: RiskPolicy) -> CheckOutcome:
    if f.parse_failed:
        return CheckOutcome(1.0, risk="URL could not be parsed")
    return CheckOutcome(0.0)


CHECKS: Tuple[Tuple[str, Callable[[FeatureSet, RiskPolicy], CheckOutcome]], ...] = (
    ("having_ip", _having_ip),
    ("long_url", _long_url),
    ("shortening_service", _shortening_service),
    ("has_at_symbol", _has_at_symbol),
    ("double_slash_redirecting", _double_slash),
    ("prefix_suffix", _prefix_suffix),
    ("subdomain_present", _subdomain_present),
    ("missing_https", _missing_https),
    ("unknown_domain", _unknown_domain),
    ("has_port", _has_port),
    ("https_token", _https_token),
    ("abnormal_url", _abnormal_url),
    ("high_entropy_host", _high_entropy_host),
    ("long_digit_run", _long_digit_run),
    ("label_mixed_digits_letters", _mixed_label),
    ("uncommon_tld", _uncommon_tld),
    ("suspicious_keyword", _suspicious_keyword),
    ("parse_failed", _parse_failed),
)


def classify(risk_percentage: float, policy: RiskPolicy = DEFAULT_POLICY) -> Classification:
    """Map a 0..100 percentage to a class. Thresholds are exclusive."""
    if risk_percentage > policy.malicious_threshold:
        return Classification.MALICIOUS
    if risk_percentage > policy.suspicious_threshold:
        return Classification.SUSPICIOUS
    return Classification.SAFE


def calibrate_confidence(risk_percentage: float) -> float:
    """Higher certainty at the extremes, lower near the decision band."""
    distance = abs(risk_percentage - 50)
    if risk_percentage > 70 or risk_percentage < 20:
        confidence = min(95.0, 75 + distance)
    else:
        confidence = 60 + distance * 0.5
    return round(confidence, 1)


def critical_conditions(features: FeatureSet, policy: RiskPolicy = DEFAULT_POLICY) -> List[Tuple[str, str, float]]:
    """Return (feature, explanation, magnitude) for each critical pattern present."""
    fired = []
    if features.contains_obfuscation_chars:
        fired.append((
            "contains_obfuscation_chars",
            "Contains obfuscation characters (*, {}, [], etc.)",
            1.0,
        ))
    if features.longest_digit_run >= policy.critical_digit_run:
        fired.append((
            "longest_digit_run",
            f"Suspicious digit sequence ({features.longest_digit_run} consecutive)",
            min(1.0, features.longest_digit_run / 10),
        ))
    if features.having_ip and features.label_mixed_digits_letters:
        fired.append((
            "having_ip",
            "IP-like host with mixed alphanumeric patterns",
            1.0,
        ))
    return fired


def _rank(contributions: List[Tuple[str, float]], limit: int) -> Tuple[Tuple[str, float], ...]:
    # sorted() is stable, so ties keep evaluation order
    ranked = sorted(contributions, key=lambda item: abs(item[1]), reverse=True)
    return tuple(ranked[:limit])


def score(features: FeatureSet, policy: Optional[RiskPolicy] = None, url: str = "") -> ScoreResult:
    """
    Score an extracted FeatureSet.

    Critical patterns return a fixed high-confidence malicious verdict.
    Otherwise each check in CHECKS contributes up to its policy weight and
    the sum is normalized against the total of all weights.
    """
    policy = policy or DEFAULT_POLICY

    critical = critical_conditions(features, policy)
    if critical:
        return ScoreResult(
            url=url,
            features=features,
            classification=Classification.MALICIOUS,
            confidence=round(float(policy.critical_confidence), 1),
            risk_factors=("Critical obfuscation detected",) + tuple(msg for _, msg, _ in critical),
            safety_factors=(),
            threshold=float(policy.suspicious_threshold),
            top_features=_rank([(name, magnitude) for name, _, magnitude in critical], policy.top_features),
            risk_percentage=100.0,
            critical=True,
        )

    risk_score = 0.0
    max_score = 0.0
    risk_factors = []
    safety_factors = []
    contributions = []

    for name, check in CHECKS:
        weight = policy.weights[name]
        outcome = check(features, policy)
        max_score += weight
        if outcome.risk:
            points = weight * outcome.fraction
            risk_score += points
            risk_factors.append(outcome.risk)
            contributions.append((name, points))
        elif outcome.safety:
            safety_factors.append(outcome.safety)

    risk_percentage = 100.0 * risk_score / max_score if max_score else 0.0
    top = [(name, round(points / max_score, 4)) for name, points in contributions if points > 0]

    return ScoreResult(
        url=url,
        features=features,
        classification=classify(risk_percentage, policy),
        confidence=calibrate_confidence(risk_percentage),
        risk_factors=tuple(risk_factors),
        safety_factors=tuple(safety_factors),
        threshold=float(policy.suspicious_threshold),
        top_features=_rank(top, policy.top_features),
        risk_percentage=round(risk_percentage, 1),
        critical=False,
    )


def analyze_url(url: str, policy: Optional[RiskPolicy] = None) -> ScoreResult:
    """Extract features from `url` and score them."""
    return score(extract_features(url), policy=policy, url=url if isinstance(url, str) else str(url or ""))


# Simple CLI / quick tests
if __name__ == "__main__":
    test_urls = [
        "https://github.com/",
        "http://192.168.1.1/login",
        "http://bit.ly/abc123",
        "http://paypal-secure-login123456789.tk/verify",
        "http://evil.com/*{x}",
    ]

    for u in test_urls:
        res = analyze_url(u)
        print("=" * 80)
        print("URL:", u)
        print("Risk:", res.risk_percentage, "Verdict:", res.classification.value, "Confidence:", res.confidence)
        for factor in res.risk_factors:
            print(f"- {factor}")
        print()
