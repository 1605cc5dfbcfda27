# pdscan/report.py
"""
Report assembly. Pure aggregation: no I/O happens here.
"""

from collections import Counter
from datetime import datetime, timezone
from typing import Any, Dict, Optional, Sequence

from models import (
    Classification,
    ComplianceReport,
    Finding,
    Recommendation,
    RiskLevel,
    ScanScope,
    ScanStats,
    SecurityFinding,
)


def overall_risk(findings: Sequence[Finding]) -> RiskLevel:
    """High if any special-category finding exists, Medium otherwise."""
    if any(f.classification == Classification.SENSITIVE_PERSONAL_DATA for f in findings):
        return RiskLevel.HIGH
    return RiskLevel.MEDIUM


def _utc_timestamp() -> str:
    return datetime.now(timezone.utc).replace(microsecond=0).isoformat().replace("+00:00", "Z")


def build_status(findings: Sequence[Finding], security_findings: Sequence[SecurityFinding],
                 recommendations: Sequence[Recommendation], stats: ScanStats) -> Dict[str, Any]:
    by_classification = Counter(f.classification.value for f in findings)
    return {
        "overallRisk": overall_risk(findings).value,
        "personalDataCount": by_classification.get(Classification.PERSONAL_DATA.value, 0),
        "sensitivePersonalDataCount": by_classification.get(Classification.SENSITIVE_PERSONAL_DATA.value, 0),
        "totalFindings": len(findings),
        "findingsByDataType": dict(Counter(f.data_type for f in findings)),
        "securityFindingsCount": len(security_findings),
        "recommendationsCount": len(recommendations),
        "accountsScanned": stats.accounts_scanned,
        "failedAccounts": list(stats.failed_accounts),
        "failedObjects": list(stats.failed_objects),
        "failedFeeds": list(stats.failed_feeds),
        "cancelled": stats.cancelled,
        "partial": stats.partial,
    }


def assemble(
    scope: ScanScope,
    findings: Sequence[Finding],
    security_findings: Sequence[SecurityFinding],
    recommendations: Sequence[Recommendation],
    stats: Optional[ScanStats] = None,
    timestamp: Optional[str] = None,
) -> ComplianceReport:
    stats = stats if stats is not None else ScanStats()
    return ComplianceReport(
        timestamp=timestamp or _utc_timestamp(),
        scope=scope,
        findings=tuple(findings),
        security_findings=tuple(security_findings),
        recommendations=tuple(recommendations),
        status=build_status(findings, security_findings, recommendations, stats),
    )
