# pdscan/classifier.py
"""
Pure classification rules: text in, findings out.

- Every registry entry is evaluated independently, so one value can yield several findings.
- Finding order follows registry iteration order; it is implementation-defined
  and carries no compliance meaning.
"""

from typing import Iterable, List, Optional

from models import Classification, DetectionMethod, Finding, RiskLevel, ScannedField
from pdscan.patterns import PatternRegistry, default_registry

_RISK_BY_CLASSIFICATION = {
    Classification.SENSITIVE_PERSONAL_DATA: RiskLevel.HIGH,
    Classification.PERSONAL_DATA: RiskLevel.MEDIUM,
}


def risk_level_for(classification: Classification) -> RiskLevel:
    return _RISK_BY_CLASSIFICATION[classification]


def classify(
    location: str,
    field_value: str,
    registry: Optional[PatternRegistry] = None,
    field: str = "",
    detection_method: DetectionMethod = DetectionMethod.METADATA_ANALYSIS,
) -> List[Finding]:
    """
    Return one Finding per pattern that matches field_value.
    """
    if registry is None:
        registry = default_registry()
    if not field_value:
        return []
    findings: List[Finding] = []
    for spec in registry:
        if spec.matches(field_value):
            findings.append(Finding(
                location=location,
                data_type=spec.data_type,
                classification=spec.classification,
                gdpr_category=spec.gdpr_category,
                detection_method=detection_method,
                risk_level=risk_level_for(spec.classification),
                field=field,
            ))
    return findings


def classify_fields(fields: Iterable[ScannedField], registry: Optional[PatternRegistry] = None) -> List[Finding]:
    findings: List[Finding] = []
    for f in fields:
        findings.extend(classify(
            f.location,
            f.value,
            registry=registry,
            field=f.field,
            detection_method=f.detection_method,
        ))
    return findings
