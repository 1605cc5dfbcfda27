import logging
import time
from concurrent.futures import ThreadPoolExecutor
from types import SimpleNamespace

import pytest
from azure.core.exceptions import ClientAuthenticationError, HttpResponseError
from azure.mgmt.security.models import AlertSeverity, AlertStatus, AssessmentStatusCode, Severity

from errors import FatalSetupError, SecurityFeedError, StorageAccessError
from models import Priority, ScanScope, ScanStats
from pdscan.azure_storage import (
    AzureBlobBackend,
    AzureSecurityFeed,
    alert_to_item,
    assessment_to_item,
    resource_group_from_id,
    verify_azure_session,
)
from pdscan.object_scanner import scan
from pdscan.recommendations import recommend
from pdscan.security_findings import fetch_relevant
from tests.conftest import SUBSCRIPTION_ID


def _account(name, rg):
    return SimpleNamespace(
        name=name,
        id=f"/subscriptions/{SUBSCRIPTION_ID}/resourceGroups/{rg}/providers/Microsoft.Storage/storageAccounts/{name}",
        primary_endpoints=SimpleNamespace(blob=f"https://{name}.blob.core.windows.net/"),
    )


class _StorageAccounts:
    def __init__(self, accounts):
        self.accounts = accounts
        self.requested_group = None

    def list(self):
        return iter(self.accounts)

    def list_by_resource_group(self, resource_group):
        self.requested_group = resource_group
        return iter(a for a in self.accounts if f"/resourceGroups/{resource_group}/" in a.id)


class _ContainerClient:
    def __init__(self, blobs):
        self.blobs = blobs

    def list_blobs(self, include=None):
        assert include == ["metadata"]
        return iter(SimpleNamespace(name=n, metadata=m) for n, m in self.blobs.items())


class _BlobService:
    def __init__(self, containers, fail=False):
        self.containers = containers
        self.fail = fail
        self.closed = False

    def close(self):
        self.closed = True

    def list_containers(self):
        if self.fail:
            raise HttpResponseError(message="This request is not authorized to perform this operation.")
        return iter(SimpleNamespace(name=n) for n in self.containers)

    def get_container_client(self, name):
        return _ContainerClient(self.containers[name])


SERVICES = {
    "https://stcustomer.blob.core.windows.net/": _BlobService({
        "exports": {"a.csv": {"owner": "alice@example.com"}, "b.json": {"id": "123-45-6789"}},
    }),
    "https://stlocked.blob.core.windows.net/": _BlobService({}, fail=True),
}


def _backend(accounts):
    storage = SimpleNamespace(storage_accounts=_StorageAccounts(accounts))
    return AzureBlobBackend(
        credential=object(),
        subscription_id=SUBSCRIPTION_ID,
        storage_client=storage,
        blob_client_factory=lambda url, cred: SERVICES[url],
    )


def test_resource_group_from_id():
    assert resource_group_from_id(_account("x", "rg-data").id) == "rg-data"
    assert resource_group_from_id("") is None


def test_list_accounts_by_resource_group():
    backend = _backend([_account("stcustomer", "rg-data"), _account("stlocked", "rg-ops")])
    all_accounts = backend.list_accounts()
    assert [(a.name, a.resource_group) for a in all_accounts] == [("stcustomer", "rg-data"), ("stlocked", "rg-ops")]
    assert [a.name for a in backend.list_accounts("rg-data")] == ["stcustomer"]


def test_scan_isolates_unauthorized_account(caplog):
    backend = _backend([_account("stlocked", "rg-ops"), _account("stcustomer", "rg-data")])
    stats = ScanStats()
    with caplog.at_level(logging.ERROR):
        findings = scan(backend, ScanScope(SUBSCRIPTION_ID), stats=stats)

    assert sorted((f.location, f.data_type) for f in findings) == [
        ("stcustomer/exports/a.csv", "Email"),
        ("stcustomer/exports/b.json", "SSN"),
    ]
    assert stats.failed_accounts == ["stlocked"]
    assert any("stlocked" in r.getMessage() for r in caplog.records)


def test_list_containers_translates_azure_errors():
    backend = _backend([_account("stlocked", "rg-ops")])
    account = backend.list_accounts()[0]
    with pytest.raises(StorageAccessError):
        list(backend.list_containers(account))


def test_verify_azure_session():
    class _Credential:
        def __init__(self, fail=False):
            self.fail = fail

        def get_token(self, *scopes):
            if self.fail:
                raise ClientAuthenticationError(message="no credential available")
            return SimpleNamespace(token="t", expires_on=0)

    verify_azure_session(_Credential(), SUBSCRIPTION_ID)
    with pytest.raises(FatalSetupError, match="Invalid subscription"):
        verify_azure_session(_Credential(), "not-a-guid")
    with pytest.raises(FatalSetupError, match="authentication"):
        verify_azure_session(_Credential(fail=True), SUBSCRIPTION_ID)


def test_alert_and_assessment_mapping():
    alert = SimpleNamespace(
        alert_display_name="Unusual data extraction from storage",
        description="Large volume of blobs downloaded",
        severity=AlertSeverity.HIGH,
        status=AlertStatus.ACTIVE,
        resource_identifiers=[SimpleNamespace(azure_resource_id="/subscriptions/x/storageAccounts/stcustomer")],
    )
    assert alert_to_item(alert) == {
        "name": "Unusual data extraction from storage",
        "description": "Large volume of blobs downloaded",
        "severity": "High",
        "status": "Active",
        "resourceRefs": ["/subscriptions/x/storageAccounts/stcustomer"],
    }
    assessment = SimpleNamespace(
        display_name="Storage accounts should restrict network access",
        metadata=SimpleNamespace(description="Restrict public network access", severity=Severity.MEDIUM),
        status=SimpleNamespace(code=AssessmentStatusCode.UNHEALTHY),
        resource_details=SimpleNamespace(id="/subscriptions/x/storageAccounts/stcustomer"),
    )
    item = assessment_to_item(assessment)
    assert item["status"] == "Unhealthy"
    assert item["severity"] == "Medium"


def test_high_severity_alert_drives_security_posture_recommendation():
    alert = SimpleNamespace(
        alert_display_name="Unusual access to storage account",
        description="Anonymous access from an unfamiliar IP",
        severity=AlertSeverity.HIGH,
        status=AlertStatus.ACTIVE,
        resource_identifiers=[],
    )
    security = SimpleNamespace(alerts=_Alerts([alert]), assessments=_Assessments())
    feed = AzureSecurityFeed(object(), SUBSCRIPTION_ID, security_client=security)

    findings = fetch_relevant(feed, ScanScope(SUBSCRIPTION_ID))
    assert [(f.severity, f.status) for f in findings] == [("High", "Active")]
    recs = recommend([], findings)
    assert [(r.priority, r.category) for r in recs] == [(Priority.CRITICAL, "Security Posture")]


class _Alerts:
    def __init__(self, items=(), fail=False):
        self.items, self.fail = list(items), fail

    def list(self):
        if self.fail:
            raise HttpResponseError(message="Service unavailable")
        return iter(self.items)


class _Assessments:
    def __init__(self, items=()):
        self.items = list(items)
        self.scope = None

    def list(self, scope):
        self.scope = scope
        return iter(self.items)


def test_security_feed_degrades_when_alerts_unavailable():
    assessments = _Assessments([SimpleNamespace(
        display_name="Personal data should be encrypted",
        metadata=SimpleNamespace(description="", severity=Severity.HIGH),
        status=SimpleNamespace(code=AssessmentStatusCode.UNHEALTHY),
        resource_details=None,
    )])
    security = SimpleNamespace(alerts=_Alerts(fail=True), assessments=assessments)
    feed = AzureSecurityFeed(object(), SUBSCRIPTION_ID, security_client=security)

    with pytest.raises(SecurityFeedError):
        feed.list_alerts(ScanScope(SUBSCRIPTION_ID))

    stats = ScanStats()
    findings = fetch_relevant(feed, ScanScope(SUBSCRIPTION_ID), stats)
    assert [f.name for f in findings] == ["Personal data should be encrypted"]
    assert stats.failed_feeds == ["alerts"]
    assert assessments.scope == f"/subscriptions/{SUBSCRIPTION_ID}"


def test_blob_clients_are_shared_across_workers_and_closed():
    created = []

    def factory(url, cred):
        time.sleep(0.01)
        service = _BlobService({"c": {}})
        created.append(service)
        return service

    storage = SimpleNamespace(storage_accounts=_StorageAccounts([_account("stshared", "rg-data")]))
    backend = AzureBlobBackend(object(), SUBSCRIPTION_ID, storage_client=storage, blob_client_factory=factory)
    account = backend.list_accounts()[0]

    with ThreadPoolExecutor(max_workers=8) as pool:
        listings = list(pool.map(lambda _: [c.name for c in backend.list_containers(account)], range(8)))

    assert listings == [["c"]] * 8
    assert len(created) == 1
    backend.close()
    assert created[0].closed
    list(backend.list_containers(account))
    assert len(created) == 2
