# batch.py
"""
Batch scanning: run the scanner over a list of URLs on a thread pool.

Results come back in input order, one per URL. A failure while scanning
one URL produces an error entry for that URL and does not affect the rest.
"""

import logging
import os
from collections import Counter
from concurrent.futures import ThreadPoolExecutor
from typing import Dict, List, Optional, Sequence

from .app.corroboration import Corroborator
from .app.scanner import scan_url
from .policy import RiskPolicy

logger = logging.getLogger("batch")

MAX_BATCH_SIZE = 100

try:
    DEFAULT_WORKERS = max(1, int(os.getenv("URLRISK_BATCH_WORKERS", "10")))
except ValueError:
    DEFAULT_WORKERS = 10


class BatchTooLarge(ValueError):
    pass


def _scan_one(url: str, corroborator: Optional[Corroborator], policy: Optional[RiskPolicy]) -> dict:
    try:
        return scan_url(url, corroborator=corroborator, policy=policy)
    except Exception as e:
        logger.exception("Scan failed for %r", url)
        return {
            "url": url,
            "error": str(e) or type(e).__name__,
            "classification": "error",
            "confidence": 0,
        }


def scan_batch(urls: Sequence[str], corroborator: Optional[Corroborator] = None,
               policy: Optional[RiskPolicy] = None, max_workers: Optional[int] = None) -> List[dict]:
    """Scan up to MAX_BATCH_SIZE URLs, preserving input order."""
    if len(urls) > MAX_BATCH_SIZE:
        raise BatchTooLarge(f"Maximum {MAX_BATCH_SIZE} URLs allowed per batch (got {len(urls)})")
    if not urls:
        return []

    workers = min(max_workers or DEFAULT_WORKERS, len(urls))
    logger.info("Batch analyzing %d URLs with %d workers", len(urls), workers)

    with ThreadPoolExecutor(max_workers=workers) as pool:
        futures = [pool.submit(_scan_one, u, corroborator, policy) for u in urls]
        results = [f.result() for f in futures]

    logger.info("Batch analysis complete: %d URLs processed", len(results))
    return results


def result_classification(result: dict) -> str:
    if "local" in result:
        return result["local"]["classification"]
    return result.get("classification", "error")


def summarize(results: Sequence[dict]) -> Dict[str, int]:
    """Count results per classification (including 'error')."""
    counts = Counter(result_classification(r) for r in results)
    summary = {"safe": 0, "suspicious": 0, "malicious": 0, "error": 0}
    summary.update(counts)
    return summary
