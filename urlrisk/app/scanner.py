"""
Scan orchestration: local verdict first, then an optional second opinion.

The two verdicts are returned side by side and never merged.
"""

import argparse
import json
import logging
from typing import Optional

from ..policy import RiskPolicy, load_policy
from .corroboration import CorroborationError, Corroborator, build_corroborator
from .heuristics import analyze_url

logger = logging.getLogger("scanner")

UNAVAILABLE_NOTICE = "corroboration unavailable"


def corroborate(url: str, local, corroborator: Optional[Corroborator]) -> dict:
	if corroborator is None:
		return {"status": "disabled"}
	try:
		opinion = corroborator.classify(url, local.features)
	except CorroborationError as e:
		logger.warning("Corroboration failed for %s (%s): %s", url, e.reason, e)
		return {
			"status": "unavailable",
			"notice": UNAVAILABLE_NOTICE,
			"reason": e.reason,
			"detail": str(e),
		}
	return {"status": "ok", **opinion.to_dict()}


def scan_url(url: str, corroborator: Optional[Corroborator] = None,
			 policy: Optional[RiskPolicy] = None) -> dict:
	"""
	Run the offline risk model on `url` and, when a corroborator is given,
	ask it for an independent verdict.
	"""
	result = {"url": url}

	# -------------------------------------
	# 1. LOCAL RISK MODEL
	# -------------------------------------
	local = analyze_url(url, policy=policy)
	result["local"] = local.to_dict()

	# -------------------------------------
	# 2. OPTIONAL SECOND OPINION
	# -------------------------------------
	opinion = corroborate(url, local, corroborator)
	result["corroboration"] = opinion

	if opinion["status"] == "ok":
		result["agreement"] = opinion["classification"] == local.classification.value
	else:
		result["agreement"] = None

	return result


def _read_url_file(path: str) -> list:
	with open(path, "r", encoding="utf-8") as fh:
		return [line.strip() for line in fh if line.strip()]


def main(argv=None) -> int:
	parser = argparse.ArgumentParser(description="Score URLs for phishing risk (offline).")
	parser.add_argument("urls", nargs="*", help="URLs to scan")
	parser.add_argument("--file", help="newline-separated list of URLs")
	parser.add_argument("--policy", help="JSON risk policy override")
	parser.add_argument("--corroborate", action="store_true",
						help="ask the configured AI endpoint for a second opinion")
	args = parser.parse_args(argv)

	logging.basicConfig(level=logging.INFO)

	urls = list(args.urls)
	if args.file:
		urls.extend(_read_url_file(args.file))
	if not urls:
		parser.error("no URLs given")

	policy = load_policy(args.policy)
	corroborator = build_corroborator() if args.corroborate else None

	for u in urls:
		print(json.dumps(scan_url(u, corroborator=corroborator, policy=policy)))
	return 0


# CLI testing
if __name__ == "__main__":
	raise SystemExit(main())
