# pdscan/recommendations.py
"""
Fixed remediation rules.

- Rules are independent and evaluated in declaration order; output order is that order.
- Nothing is merged or deduplicated, also not against earlier scans.
"""

from typing import List, Sequence

from config import GDPR_ARTICLE_9, GDPR_ARTICLE_32
from models import Classification, Finding, Priority, Recommendation, SecurityFinding

CLASSIFICATION_RECOMMENDATION = Recommendation(
    priority=Priority.HIGH,
    category="Data Classification",
    recommendation="Apply sensitivity labels and encryption to storage holding personal data",
    compliance_control=GDPR_ARTICLE_32,
    action_required="Classify discovered personal data and enforce encryption at rest and in transit",
)

SPECIAL_CATEGORY_RECOMMENDATION = Recommendation(
    priority=Priority.CRITICAL,
    category="Special Category Data",
    recommendation="Implement additional protection for special category personal data",
    compliance_control=GDPR_ARTICLE_9,
    action_required="Restrict access, enable customer-managed keys and review the lawful basis for processing",
)

SECURITY_RECOMMENDATION = Recommendation(
    priority=Priority.CRITICAL,
    category="Security Posture",
    recommendation="Remediate high severity security findings immediately",
    compliance_control=GDPR_ARTICLE_32,
    action_required="Investigate and resolve high severity alerts and failed assessments",
)


def recommend(findings: Sequence[Finding], security_findings: Sequence[SecurityFinding]) -> List[Recommendation]:
    recommendations: List[Recommendation] = []
    if findings:
        recommendations.append(CLASSIFICATION_RECOMMENDATION)
    if any(f.classification == Classification.SENSITIVE_PERSONAL_DATA for f in findings):
        recommendations.append(SPECIAL_CATEGORY_RECOMMENDATION)
    if any(s.severity.lower() == "high" for s in security_findings):
        recommendations.append(SECURITY_RECOMMENDATION)
    return recommendations
