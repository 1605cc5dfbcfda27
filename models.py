# models.py
"""
Data models used by the scanner.

- Keep simple, serializable dataclasses for findings and report parts.
- Entities are frozen: they are created once during a scan and never mutated.
- to_dict() produces the camelCase JSON shape written to reports.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, NamedTuple, Optional, Tuple


class Classification(str, Enum):
    PERSONAL_DATA = "PersonalData"
    SENSITIVE_PERSONAL_DATA = "SensitivePersonalData"


class DetectionMethod(str, Enum):
    METADATA_ANALYSIS = "MetadataAnalysis"
    CONTENT_ANALYSIS = "ContentAnalysis"


class RiskLevel(str, Enum):
    LOW = "Low"
    MEDIUM = "Medium"
    HIGH = "High"


class Priority(str, Enum):
    CRITICAL = "Critical"
    HIGH = "High"
    MEDIUM = "Medium"
    LOW = "Low"


# --- Scan scope and storage entities ---------------------------------------

@dataclass(frozen=True)
class ScanScope:
    """Subscription (or AWS account) plus optional resource-group filter."""
    subscription_id: str
    resource_group: Optional[str] = None

    def describe(self) -> str:
        if self.resource_group:
            return f"Resource Group: {self.resource_group}"
        return "Subscription"


@dataclass(frozen=True)
class StorageAccount:
    name: str
    resource_group: Optional[str] = None
    endpoint: Optional[str] = None


@dataclass(frozen=True)
class StorageContainer:
    account: StorageAccount
    name: str


@dataclass(frozen=True)
class StorageObject:
    """
    A blob or S3 object.

    - location: canonical path used in findings (e.g. "acct/container/blob" or "s3://bucket/key")
    - metadata: set when the listing already returned it; backends fetch it otherwise
    """
    container: StorageContainer
    name: str
    location: str
    metadata: Optional[Dict[str, str]] = None


class ScannedField(NamedTuple):
    location: str
    field: str
    value: str
    detection_method: DetectionMethod = DetectionMethod.METADATA_ANALYSIS


# --- Findings ---------------------------------------------------------------

@dataclass(frozen=True)
class Finding:
    """
    One personal-data detection.

    Fields:
    - location: account/container/object path
    - data_type: registry name of the pattern that matched (Email, SSN, ...)
    - classification: PersonalData or SensitivePersonalData
    - gdpr_category: regulatory category text
    - detection_method: metadata or content analysis
    - risk_level: derived from classification
    - field: metadata key (or "content") the value came from
    """
    location: str
    data_type: str
    classification: Classification
    gdpr_category: str
    detection_method: DetectionMethod
    risk_level: RiskLevel
    field: str = ""

    def to_dict(self) -> Dict[str, str]:
        return {
            "location": self.location,
            "field": self.field,
            "dataType": self.data_type,
            "classification": self.classification.value,
            "gdprCategory": self.gdpr_category,
            "detectionMethod": self.detection_method.value,
            "riskLevel": self.risk_level.value,
        }


@dataclass(frozen=True)
class SecurityFinding:
    """
    A security alert or assessment normalized from the external feed.

    source is "alert" or "assessment"; it selects the name key in reports.
    """
    name: str
    description: str
    severity: str
    status: str
    source: str
    resource_refs: Tuple[str, ...] = ()
    compliance_impact: str = ""

    def to_dict(self) -> Dict[str, Any]:
        name_key = "alertName" if self.source == "alert" else "assessmentName"
        return {
            name_key: self.name,
            "description": self.description,
            "severity": self.severity,
            "status": self.status,
            "resourceRefs": list(self.resource_refs),
            "complianceImpact": self.compliance_impact,
        }


@dataclass(frozen=True)
class Recommendation:
    priority: Priority
    category: str
    recommendation: str
    compliance_control: str
    action_required: str

    def to_dict(self) -> Dict[str, str]:
        return {
            "priority": self.priority.value,
            "category": self.category,
            "recommendation": self.recommendation,
            "complianceControl": self.compliance_control,
            "actionRequired": self.action_required,
        }


# --- Run bookkeeping and report --------------------------------------------

@dataclass
class ScanStats:
    """
    Degradation counters filled in while scanning.

    This is the only mutable model; the report copies it at assembly time.
    """
    accounts_scanned: int = 0
    failed_accounts: List[str] = field(default_factory=list)
    failed_objects: List[str] = field(default_factory=list)
    failed_feeds: List[str] = field(default_factory=list)
    cancelled: bool = False

    @property
    def partial(self) -> bool:
        return bool(self.failed_accounts or self.failed_objects or self.failed_feeds or self.cancelled)


@dataclass(frozen=True)
class ComplianceReport:
    timestamp: str
    scope: ScanScope
    findings: Tuple[Finding, ...]
    security_findings: Tuple[SecurityFinding, ...]
    recommendations: Tuple[Recommendation, ...]
    status: Dict[str, Any]

    @property
    def overall_risk(self) -> RiskLevel:
        return RiskLevel(self.status["overallRisk"])

    def to_dict(self) -> Dict[str, Any]:
        return {
            "timestamp": self.timestamp,
            "subscriptionId": self.scope.subscription_id,
            "resourceGroup": self.scope.resource_group,
            "scanScope": self.scope.describe(),
            "personalDataDiscovered": [f.to_dict() for f in self.findings],
            "securityFindings": [s.to_dict() for s in self.security_findings],
            "recommendations": [r.to_dict() for r in self.recommendations],
            "complianceStatus": dict(self.status),
        }
