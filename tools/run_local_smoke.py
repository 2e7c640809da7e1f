"""
Quick local smoke test: score a few sample URLs with the offline risk model and
print one JSON line per URL with the verdict, risk percentage and top features,
followed by a per-class summary.

Run: python3 tools/run_local_smoke.py [--policy policy.json]
"""
import argparse
import json

from urlrisk.batch import scan_batch, summarize
from urlrisk.policy import load_policy

SAMPLES = [
    "https://github.com/",
    "https://www.google.com/search?q=urls",
    "http://192.168.1.1/login",
    "http://bit.ly/abc123",
    "http://paypal-secure-login123456789.tk/verify",
    "http://evil.com/*{x}",
    "",
]


def main():
    parser = argparse.ArgumentParser()
    parser.add_argument('--policy', default=None)
    args = parser.parse_args()

    policy = load_policy(args.policy)
    print("suspicious >", policy.suspicious_threshold, "malicious >", policy.malicious_threshold)

    results = scan_batch(SAMPLES, policy=policy)
    for r in results:
        local = r.get("local", {})
        print(json.dumps({
            "url": r["url"],
            "classification": local.get("classification", r.get("classification")),
            "risk_percentage": local.get("risk_percentage"),
            "confidence": local.get("confidence"),
            "top_features": local.get("top_features"),
        }))
    print(json.dumps(summarize(results)))


if __name__ == '__main__':
    main()
