# extract_features.py
"""
Extracts lexical, structural and statistical features from a URL string.

Only the string itself is inspected: no DNS, no HTTP, no WHOIS. Raw
character counts use the input exactly as given; anything that depends on
scheme/host parsing uses the normalized form (trimmed, lowercased, with
http:// prepended when no scheme is present).
"""

import math
import re
from typing import Optional
from urllib.parse import urlsplit

from .models import FeatureSet
from .policy import (
    COMMON_TLDS,
    HIGH_RISK_TLDS,
    KNOWN_BRANDS,
    OBFUSCATION_CHARS,
    SHORTENING_SERVICES,
    SUSPICIOUS_KEYWORDS,
)

SCHEME_RE = re.compile(r'^[a-zA-Z][a-zA-Z0-9+.-]*://')
IP_RE = re.compile(r'(\d{1,3}\.){3}\d{1,3}')
LEADING_SCHEME_RE = re.compile(r'^https?://')
DIGIT_RUN_RE = re.compile(r'\d+')
ALNUM_RUN_RE = re.compile(r'[a-z0-9]+', re.IGNORECASE)

DEFAULT_PORTS = {"http": 80, "https": 443}
ABNORMAL_URL_LENGTH = 100
LONG_ALNUM_LENGTH = 15


def shannon_entropy(data: str) -> float:
    """Calculate entropy (bits per character) for randomness detection."""
    if not data:
        return 0.0
    probabilities = [float(data.count(c)) / len(data) for c in set(data)]
    return abs(-sum(p * math.log(p, 2) for p in probabilities))


def normalize_url(url: str) -> str:
    url = url.strip().lower()
    if not SCHEME_RE.match(url):
        return 'http://' + url
    return url


def _longest_run(pattern, s: str) -> int:
    return max((len(m) for m in pattern.findall(s)), default=0)


def _is_shortener(host: str) -> bool:
    return any(host == s or host.endswith('.' + s) for s in SHORTENING_SERVICES)


def _has_mixed_label(host: str) -> bool:
    for label in host.split('.'):
        if any(c.isdigit() for c in label) and any(c.isalpha() for c in label):
            return True
    return False


def extract_character_features(raw: str) -> dict:
    url_length = len(raw)
    num_digits = sum(c.isdigit() for c in raw)
    longest_alnum = _longest_run(ALNUM_RUN_RE, raw)
    return {
        "url_length": url_length,
        "num_digits": num_digits,
        "digits_ratio": num_digits / url_length if url_length else 0.0,
        "longest_digit_run": _longest_run(DIGIT_RUN_RE, raw),
        "num_hyphens": raw.count('-'),
        "num_underscores": raw.count('_'),
        "num_asterisks": raw.count('*'),
        "longest_alnum_run": longest_alnum,
        "long_alnum_sequence": 1 if longest_alnum >= LONG_ALNUM_LENGTH else 0,
        "contains_obfuscation_chars": 1 if any(c in OBFUSCATION_CHARS for c in raw) else 0,
        "abnormal_url": 1 if url_length > ABNORMAL_URL_LENGTH else 0,
    }


def extract_pattern_features(normalized: str) -> dict:
    without_scheme = LEADING_SCHEME_RE.sub('', normalized)
    return {
        "having_ip": 1 if IP_RE.search(normalized) else 0,
        "has_at_symbol": 1 if '@' in normalized else 0,
        # the scheme's own // sits at index 5 or 6
        "double_slash_redirecting": 1 if normalized.rfind('//') > 7 else 0,
        "https_token": 1 if 'https' in without_scheme else 0,
        "uses_https": 1 if normalized.startswith('https://') else 0,
        "suspicious_keyword": 1 if any(k in normalized for k in SUSPICIOUS_KEYWORDS) else 0,
    }


# Used when the host cannot be determined; biased towards "risky".
FALLBACK_HOST_FEATURES = {
    "host_length": 0,
    "path_length": 0,
    "entropy_host": 0.0,
    "tld_length": 0,
    "subdomain_present": 1,
    "uncommon_tld": 1,
    "high_risk_tld": 0,
    "prefix_suffix": 1,
    "has_port": 1,
    "label_mixed_digits_letters": 1,
    "known_domain": 0,
    "shortening_service": 0,
    "parse_failed": 1,
}


def _port_is_nonstandard(scheme: str, port: Optional[int]) -> int:
    if port is None:
        return 0
    return 0 if DEFAULT_PORTS.get(scheme) == port else 1


def extract_host_features(normalized: str) -> dict:
    try:
        parsed = urlsplit(normalized)
        host = parsed.hostname or ''
    except ValueError:
        return dict(FALLBACK_HOST_FEATURES)
    if not host:
        return dict(FALLBACK_HOST_FEATURES)

    try:
        has_port = _port_is_nonstandard(parsed.scheme, parsed.port)
    except ValueError:
        # port present but not a valid number
        has_port = 1

    labels = host.split('.')
    tld = labels[-1]
    return {
        "host_length": len(host),
        "path_length": len(parsed.path),
        "entropy_host": shannon_entropy(host),
        "tld_length": len(tld),
        "subdomain_present": 1 if len(labels) > 2 else 0,
        "uncommon_tld": 0 if tld in COMMON_TLDS else 1,
        "high_risk_tld": 1 if tld in HIGH_RISK_TLDS else 0,
        "prefix_suffix": 1 if '-' in host else 0,
        "has_port": has_port,
        "label_mixed_digits_letters": 1 if _has_mixed_label(host) else 0,
        "known_domain": 1 if any(b in host for b in KNOWN_BRANDS) else 0,
        "shortening_service": 1 if _is_shortener(host) else 0,
        "parse_failed": 0,
    }


def extract_features(url: str) -> FeatureSet:
    """
    Main feature extraction pipeline.
    Never raises for malformed input; see FALLBACK_HOST_FEATURES.
    """
    raw = url if isinstance(url, str) else str(url or '')
    normalized = normalize_url(raw)

    features = {}

    # 1. Raw character composition
    features.update(extract_character_features(raw))

    # 2. Whole-URL patterns
    features.update(extract_pattern_features(normalized))

    # 3. Host structure
    features.update(extract_host_features(normalized))

    return FeatureSet(**features)


if __name__ == "__main__":
    test = extract_features("http://example.com/login")
    print(test.to_dict())
