# pdscan/aws_s3.py
"""
AWS backend: S3 enumeration plus GuardDuty / Security Hub feeds.

- Pure mapping helpers turn API responses into plain dicts and are testable without AWS.
- S3Backend treats every bucket as a storage account holding one container of the same name.
- The resource-group filter matches the bucket tag named by RESOURCE_GROUP_TAG.
- ClientError / BotoCoreError are translated into StorageAccessError or SecurityFeedError
  so the scanner can isolate the failing bucket or feed.
"""

import logging
from typing import Any, Dict, Iterator, List, Optional

from botocore.config import Config as BotoConfig
from botocore.exceptions import BotoCoreError, ClientError

from config import RESOURCE_GROUP_TAG
from errors import FatalSetupError, SecurityFeedError, StorageAccessError
from models import ScanScope, StorageAccount, StorageContainer, StorageObject

logger = logging.getLogger("cloud_scanner.aws")

# GuardDuty get_findings accepts at most 50 ids per call
GUARDDUTY_BATCH_SIZE = 50


def _error_code(e: Exception) -> str:
    if isinstance(e, ClientError):
        return e.response.get("Error", {}).get("Code", "ClientError")
    return type(e).__name__


# --- Pure mapping helpers ---------------------------------------------------

def guardduty_severity_label(score: float) -> str:
    """
    Map GuardDuty's numeric severity (1.0-8.9) to Low / Medium / High.
    """
    if score >= 7.0:
        return "High"
    if score >= 4.0:
        return "Medium"
    return "Low"


def securityhub_severity_label(label: str) -> str:
    """
    Map Security Hub labels to the report's severity words. CRITICAL counts as High.
    """
    label = (label or "").upper()
    if label in ("CRITICAL", "HIGH"):
        return "High"
    if label == "MEDIUM":
        return "Medium"
    if label == "LOW":
        return "Low"
    return "Informational"


def guardduty_finding_to_item(finding: Dict[str, Any]) -> Dict[str, Any]:
    resource = finding.get("Resource", {}) or {}
    archived = (finding.get("Service", {}) or {}).get("Archived", False)
    refs = [resource["ResourceType"]] if resource.get("ResourceType") else []
    return {
        "name": finding.get("Title", ""),
        "description": finding.get("Description", ""),
        "severity": guardduty_severity_label(float(finding.get("Severity", 0) or 0)),
        "status": "Archived" if archived else "Active",
        "resourceRefs": refs,
    }


def securityhub_finding_to_item(finding: Dict[str, Any]) -> Dict[str, Any]:
    compliance = finding.get("Compliance", {}) or {}
    workflow = finding.get("Workflow", {}) or {}
    return {
        "name": finding.get("Title", ""),
        "description": finding.get("Description", ""),
        "severity": securityhub_severity_label((finding.get("Severity", {}) or {}).get("Label", "")),
        "status": compliance.get("Status") or workflow.get("Status") or "Unknown",
        "resourceRefs": [r.get("Id", "") for r in finding.get("Resources", []) if r.get("Id")],
    }


# --- Session checks -------------------------------------------------------

def verify_aws_session(session, subscription_id: str) -> str:
    """
    Confirm credentials work and belong to the expected account.
    Returns the caller ARN. Raises FatalSetupError otherwise.
    """
    try:
        identity = session.client("sts").get_caller_identity()
    except (ClientError, BotoCoreError) as e:
        raise FatalSetupError(f"AWS authentication failed: {e}") from e
    account = identity.get("Account")
    if account != subscription_id:
        raise FatalSetupError(
            f"Credentials belong to account {account}, not the requested {subscription_id}"
        )
    return identity.get("Arn", "")


# --- Storage backend --------------------------------------------------------

class S3Backend:
    """
    StorageBackend over S3 using an explicitly passed boto3 Session.
    """

    def __init__(self, session, resource_group_tag: str = RESOURCE_GROUP_TAG,
                 connect_timeout: int = 10, read_timeout: int = 30):
        self._session = session
        self._tag = resource_group_tag
        self._s3 = session.client("s3", config=BotoConfig(
            connect_timeout=connect_timeout,
            read_timeout=read_timeout,
            retries={"max_attempts": 3, "mode": "standard"},
        ))

    def _bucket_tags(self, bucket: str) -> Dict[str, str]:
        try:
            resp = self._s3.get_bucket_tagging(Bucket=bucket)
        except (ClientError, BotoCoreError) as e:
            if _error_code(e) == "NoSuchTagSet":
                return {}
            raise StorageAccessError(f"s3://{bucket}", _error_code(e)) from e
        return {t["Key"]: t["Value"] for t in resp.get("TagSet", [])}

    def list_accounts(self, resource_group: Optional[str] = None) -> List[StorageAccount]:
        try:
            resp = self._s3.list_buckets()
        except (ClientError, BotoCoreError) as e:
            raise StorageAccessError("aws:s3:list_buckets", str(e)) from e

        accounts: List[StorageAccount] = []
        for b in resp.get("Buckets", []):
            name = b["Name"]
            if resource_group is None:
                accounts.append(StorageAccount(name=name, endpoint=f"s3://{name}"))
                continue
            try:
                tags = self._bucket_tags(name)
            except StorageAccessError as e:
                logger.error("Could not read tags for bucket %s, excluding it: %s", name, e)
                continue
            if tags.get(self._tag) == resource_group:
                accounts.append(StorageAccount(name=name, resource_group=resource_group, endpoint=f"s3://{name}"))
        return accounts

    def list_containers(self, account: StorageAccount) -> List[StorageContainer]:
        return [StorageContainer(account=account, name=account.name)]

    def list_objects(self, container: StorageContainer) -> Iterator[StorageObject]:
        bucket = container.name
        paginator = self._s3.get_paginator("list_objects_v2")
        try:
            for page in paginator.paginate(Bucket=bucket):
                for obj in page.get("Contents", []) or []:
                    key = obj.get("Key")
                    if not key:
                        continue
                    yield StorageObject(container=container, name=key, location=f"s3://{bucket}/{key}")
        except (ClientError, BotoCoreError) as e:
            raise StorageAccessError(f"s3://{bucket}", _error_code(e)) from e

    def get_metadata(self, obj: StorageObject) -> Dict[str, str]:
        try:
            resp = self._s3.head_object(Bucket=obj.container.name, Key=obj.name)
        except (ClientError, BotoCoreError) as e:
            raise StorageAccessError(obj.location, _error_code(e)) from e
        return resp.get("Metadata", {}) or {}

    def read_content(self, obj: StorageObject, max_bytes: int) -> bytes:
        try:
            resp = self._s3.get_object(Bucket=obj.container.name, Key=obj.name, Range=f"bytes=0-{max_bytes - 1}")
            return resp["Body"].read(max_bytes)
        except (ClientError, BotoCoreError) as e:
            raise StorageAccessError(obj.location, _error_code(e)) from e


# --- Security feed ----------------------------------------------------------

class AwsSecurityFeed:
    """
    GuardDuty findings as alerts, Security Hub findings as assessments.
    """

    def __init__(self, session):
        self._session = session

    def list_alerts(self, scope: ScanScope) -> List[Dict[str, Any]]:
        gd = self._session.client("guardduty")
        items: List[Dict[str, Any]] = []
        try:
            for detector_id in gd.list_detectors().get("DetectorIds", []):
                finding_ids: List[str] = []
                for page in gd.get_paginator("list_findings").paginate(DetectorId=detector_id):
                    finding_ids.extend(page.get("FindingIds", []))
                for i in range(0, len(finding_ids), GUARDDUTY_BATCH_SIZE):
                    batch = finding_ids[i:i + GUARDDUTY_BATCH_SIZE]
                    resp = gd.get_findings(DetectorId=detector_id, FindingIds=batch)
                    items.extend(guardduty_finding_to_item(f) for f in resp.get("Findings", []))
        except (ClientError, BotoCoreError) as e:
            raise SecurityFeedError("alerts", str(e)) from e
        return items

    def list_assessments(self, scope: ScanScope) -> List[Dict[str, Any]]:
        hub = self._session.client("securityhub")
        filters = {
            "AwsAccountId": [{"Value": scope.subscription_id, "Comparison": "EQUALS"}],
            "RecordState": [{"Value": "ACTIVE", "Comparison": "EQUALS"}],
        }
        items: List[Dict[str, Any]] = []
        try:
            for page in hub.get_paginator("get_findings").paginate(Filters=filters):
                items.extend(securityhub_finding_to_item(f) for f in page.get("Findings", []))
        except (ClientError, BotoCoreError) as e:
            raise SecurityFeedError("assessments", str(e)) from e
        return items
