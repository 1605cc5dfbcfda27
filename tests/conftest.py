import pytest

from errors import SecurityFeedError, StorageAccessError
from models import ScanScope, StorageAccount, StorageContainer, StorageObject

SUBSCRIPTION_ID = "00000000-0000-0000-0000-000000000000"


class FakeBackend:
    """
    In-memory StorageBackend.

    layout: {account: {container: {blob: metadata}}}
    failing_accounts: accounts whose container listing raises StorageAccessError
    failing_containers: "account/container" pairs whose object listing raises StorageAccessError
    failing_objects: locations whose metadata read raises StorageAccessError
    """

    def __init__(self, layout, failing_accounts=(), failing_objects=(), contents=None,
                 resource_groups=None, on_metadata=None, failing_containers=()):
        self.layout = layout
        self.failing_accounts = set(failing_accounts)
        self.failing_containers = set(failing_containers)
        self.failing_objects = set(failing_objects)
        self.contents = contents or {}
        self.resource_groups = resource_groups or {}
        self.on_metadata = on_metadata
        self.content_reads = []

    def list_accounts(self, resource_group=None):
        return [
            StorageAccount(name=name, resource_group=self.resource_groups.get(name))
            for name in self.layout
            if resource_group is None or self.resource_groups.get(name) == resource_group
        ]

    def list_containers(self, account):
        if account.name in self.failing_accounts:
            raise StorageAccessError(account.name, "AuthorizationPermissionMismatch")
        return [StorageContainer(account=account, name=c) for c in self.layout[account.name]]

    def list_objects(self, container):
        if f"{container.account.name}/{container.name}" in self.failing_containers:
            raise StorageAccessError(container.name, "Throttled")
        blobs = self.layout[container.account.name][container.name]
        return [
            StorageObject(container=container, name=b, location=f"{container.account.name}/{container.name}/{b}")
            for b in blobs
        ]

    def get_metadata(self, obj):
        if obj.location in self.failing_objects:
            raise StorageAccessError(obj.location, "BlobAccessDenied")
        if self.on_metadata:
            self.on_metadata(obj)
        return self.layout[obj.container.account.name][obj.container.name][obj.name]

    def read_content(self, obj, max_bytes):
        self.content_reads.append(obj.location)
        return self.contents.get(obj.location, b"")[:max_bytes]


class FakeFeed:
    def __init__(self, alerts=(), assessments=(), alerts_error=False, assessments_error=False):
        self.alerts = list(alerts)
        self.assessments = list(assessments)
        self.alerts_error = alerts_error
        self.assessments_error = assessments_error

    def list_alerts(self, scope):
        if self.alerts_error:
            raise SecurityFeedError("alerts", "ServiceUnavailable")
        return self.alerts

    def list_assessments(self, scope):
        if self.assessments_error:
            raise SecurityFeedError("assessments", "ServiceUnavailable")
        return self.assessments


@pytest.fixture
def scope():
    return ScanScope(subscription_id=SUBSCRIPTION_ID)


@pytest.fixture
def two_blob_backend():
    return FakeBackend({
        "acct1": {
            "docs": {
                "contact.txt": {"note": "contact: alice@example.com"},
                "employee.json": {"id": "123-45-6789"},
            }
        }
    })


@pytest.fixture
def aws_credentials(monkeypatch):
    """Fake credentials so moto never reaches real AWS."""
    monkeypatch.setenv("AWS_ACCESS_KEY_ID", "testing")
    monkeypatch.setenv("AWS_SECRET_ACCESS_KEY", "testing")
    monkeypatch.setenv("AWS_SECURITY_TOKEN", "testing")
    monkeypatch.setenv("AWS_SESSION_TOKEN", "testing")
    monkeypatch.setenv("AWS_DEFAULT_REGION", "us-east-1")
