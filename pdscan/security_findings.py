# pdscan/security_findings.py
"""
Merge security alerts and assessments into the report.

- Feeds return plain dicts with name, description, severity, status and resourceRefs.
- Items are kept only when name or description contains a relevance keyword
  (case-insensitive substring). This is a coarse, best-effort heuristic: findings
  phrased without those words are dropped even if they matter for data protection.
- Each feed is queried independently; an unavailable feed contributes nothing.
"""

import logging
from typing import Any, Dict, Iterable, List, Optional, Protocol, Sequence

from config import COMPLIANCE_IMPACT, RELEVANCE_KEYWORDS
from errors import SecurityFeedError
from models import ScanScope, ScanStats, SecurityFinding

logger = logging.getLogger("cloud_scanner.security_findings")


class SecurityFeed(Protocol):
    def list_alerts(self, scope: ScanScope) -> Iterable[Dict[str, Any]]: ...

    def list_assessments(self, scope: ScanScope) -> Iterable[Dict[str, Any]]: ...


def is_relevant(item: Dict[str, Any], keywords: Sequence[str] = RELEVANCE_KEYWORDS) -> bool:
    text = f"{item.get('name') or ''} {item.get('description') or ''}".lower()
    return any(k in text for k in keywords)


def normalize_item(item: Dict[str, Any], source: str) -> SecurityFinding:
    return SecurityFinding(
        name=str(item.get("name") or ""),
        description=str(item.get("description") or ""),
        severity=str(item.get("severity") or "Unknown"),
        status=str(item.get("status") or "Unknown"),
        source=source,
        resource_refs=tuple(str(r) for r in item.get("resourceRefs") or ()),
        compliance_impact=COMPLIANCE_IMPACT,
    )


def _fetch(feed_name: str, fetch, scope: ScanScope, stats: ScanStats,
           keywords: Sequence[str]) -> List[SecurityFinding]:
    source = "alert" if feed_name == "alerts" else "assessment"
    try:
        items = list(fetch(scope))
    except SecurityFeedError as e:
        logger.error("Could not retrieve security %s: %s", feed_name, e)
        stats.failed_feeds.append(feed_name)
        return []
    kept = [normalize_item(i, source) for i in items if is_relevant(i, keywords)]
    logger.debug("Security %s: kept %d of %d item(s)", feed_name, len(kept), len(items))
    return kept


def fetch_relevant(feed: SecurityFeed, scope: ScanScope, stats: Optional[ScanStats] = None,
                   keywords: Sequence[str] = RELEVANCE_KEYWORDS) -> List[SecurityFinding]:
    """
    Return relevant alerts followed by relevant assessments for the subscription.
    """
    stats = stats if stats is not None else ScanStats()
    findings = _fetch("alerts", feed.list_alerts, scope, stats, keywords)
    findings.extend(_fetch("assessments", feed.list_assessments, scope, stats, keywords))
    logger.info("Found %d relevant security finding(s)", len(findings))
    return findings
