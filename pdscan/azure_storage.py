# pdscan/azure_storage.py
"""
Azure backend: storage accounts and blobs, plus Defender for Cloud alerts and assessments.

- Management-plane listing uses StorageManagementClient; blob listing uses BlobServiceClient.
- Blob metadata is requested with the listing, so no extra call per blob is needed.
- All clients share one explicitly passed credential; nothing is read from ambient state.
- AzureError is translated into StorageAccessError or SecurityFeedError.
"""

import logging
import re
import threading
from typing import Any, Dict, Iterator, List, Optional

from azure.core.exceptions import AzureError
from azure.mgmt.security import SecurityCenter
from azure.mgmt.storage import StorageManagementClient
from azure.storage.blob import BlobServiceClient

from errors import FatalSetupError, SecurityFeedError, StorageAccessError
from models import ScanScope, StorageAccount, StorageContainer, StorageObject

logger = logging.getLogger("cloud_scanner.azure")

MANAGEMENT_SCOPE = "https://management.azure.com/.default"

_SUBSCRIPTION_RE = re.compile(r"^[0-9a-fA-F]{8}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{12}$")
_RESOURCE_GROUP_RE = re.compile(r"/resourceGroups/([^/]+)", re.IGNORECASE)


def resource_group_from_id(resource_id: str) -> Optional[str]:
    m = _RESOURCE_GROUP_RE.search(resource_id or "")
    return m.group(1) if m else None


def verify_azure_session(credential, subscription_id: str) -> None:
    """
    Reject malformed subscription ids and confirm a management token can be issued.
    """
    if not _SUBSCRIPTION_RE.match(subscription_id or ""):
        raise FatalSetupError(f"Invalid subscription id: {subscription_id!r}")
    try:
        credential.get_token(MANAGEMENT_SCOPE)
    except AzureError as e:
        raise FatalSetupError(f"Azure authentication failed: {e}") from e


# --- Pure mapping helpers ---------------------------------------------------

def _text(value: Any) -> str:
    # SDK enums are (str, Enum) members; str() would give "AlertSeverity.HIGH".
    value = getattr(value, "value", value)
    return str(value or "")


def alert_to_item(alert: Any) -> Dict[str, Any]:
    refs = []
    for ident in getattr(alert, "resource_identifiers", None) or []:
        ref = getattr(ident, "azure_resource_id", None) or getattr(ident, "workspace_id", None)
        if ref:
            refs.append(ref)
    return {
        "name": getattr(alert, "alert_display_name", None) or getattr(alert, "name", ""),
        "description": getattr(alert, "description", "") or "",
        "severity": _text(getattr(alert, "severity", None)),
        "status": _text(getattr(alert, "status", None)),
        "resourceRefs": refs,
    }


def assessment_to_item(assessment: Any) -> Dict[str, Any]:
    metadata = getattr(assessment, "metadata", None)
    status = getattr(assessment, "status", None)
    details = getattr(assessment, "resource_details", None)
    ref = getattr(details, "id", None) or getattr(details, "native_resource_id", None)
    return {
        "name": getattr(assessment, "display_name", None) or getattr(assessment, "name", ""),
        "description": getattr(metadata, "description", "") or "",
        "severity": _text(getattr(metadata, "severity", None)),
        "status": _text(getattr(status, "code", None)),
        "resourceRefs": [ref] if ref else [],
    }


# --- Storage backend --------------------------------------------------------

class AzureBlobBackend:
    """
    StorageBackend over Azure Storage accounts in one subscription.

    blob_client_factory(account_url, credential) builds a BlobServiceClient; tests replace it.
    Blob clients are cached per account and shared by scan workers; close() releases them.
    """

    def __init__(self, credential, subscription_id: str, storage_client=None, blob_client_factory=None):
        self._credential = credential
        self._owns_storage = storage_client is None
        self._storage = storage_client or StorageManagementClient(credential, subscription_id)
        self._blob_client_factory = blob_client_factory or (
            lambda url, cred: BlobServiceClient(account_url=url, credential=cred)
        )
        self._blob_clients: Dict[str, Any] = {}
        self._lock = threading.Lock()

    def _service(self, account: StorageAccount):
        with self._lock:
            if account.name not in self._blob_clients:
                url = account.endpoint or f"https://{account.name}.blob.core.windows.net"
                self._blob_clients[account.name] = self._blob_client_factory(url, self._credential)
            return self._blob_clients[account.name]

    def close(self) -> None:
        with self._lock:
            clients = list(self._blob_clients.values())
            self._blob_clients.clear()
        for client in clients:
            client.close()
        if self._owns_storage:
            self._storage.close()

    def list_accounts(self, resource_group: Optional[str] = None) -> List[StorageAccount]:
        try:
            if resource_group:
                raw = list(self._storage.storage_accounts.list_by_resource_group(resource_group))
            else:
                raw = list(self._storage.storage_accounts.list())
        except AzureError as e:
            raise StorageAccessError("storage_accounts", str(e)) from e

        accounts: List[StorageAccount] = []
        for a in raw:
            endpoints = getattr(a, "primary_endpoints", None)
            accounts.append(StorageAccount(
                name=a.name,
                resource_group=resource_group or resource_group_from_id(getattr(a, "id", "")),
                endpoint=getattr(endpoints, "blob", None),
            ))
        return accounts

    def list_containers(self, account: StorageAccount) -> Iterator[StorageContainer]:
        try:
            for c in self._service(account).list_containers():
                yield StorageContainer(account=account, name=c.name)
        except AzureError as e:
            raise StorageAccessError(account.name, str(e)) from e

    def list_objects(self, container: StorageContainer) -> Iterator[StorageObject]:
        account = container.account
        prefix = f"{account.name}/{container.name}"
        try:
            client = self._service(account).get_container_client(container.name)
            for blob in client.list_blobs(include=["metadata"]):
                yield StorageObject(
                    container=container,
                    name=blob.name,
                    location=f"{prefix}/{blob.name}",
                    metadata=dict(blob.metadata or {}),
                )
        except AzureError as e:
            raise StorageAccessError(prefix, str(e)) from e

    def get_metadata(self, obj: StorageObject) -> Dict[str, str]:
        try:
            blob = self._service(obj.container.account).get_blob_client(obj.container.name, obj.name)
            return dict(blob.get_blob_properties().metadata or {})
        except AzureError as e:
            raise StorageAccessError(obj.location, str(e)) from e

    def read_content(self, obj: StorageObject, max_bytes: int) -> bytes:
        try:
            blob = self._service(obj.container.account).get_blob_client(obj.container.name, obj.name)
            return blob.download_blob(offset=0, length=max_bytes).readall()
        except AzureError as e:
            raise StorageAccessError(obj.location, str(e)) from e


# --- Security feed ----------------------------------------------------------

class AzureSecurityFeed:
    def __init__(self, credential, subscription_id: str, security_client=None):
        self._owns_client = security_client is None
        self._security = security_client or SecurityCenter(credential, subscription_id)

    def close(self) -> None:
        if self._owns_client:
            self._security.close()

    def list_alerts(self, scope: ScanScope) -> List[Dict[str, Any]]:
        try:
            return [alert_to_item(a) for a in self._security.alerts.list()]
        except AzureError as e:
            raise SecurityFeedError("alerts", str(e)) from e

    def list_assessments(self, scope: ScanScope) -> List[Dict[str, Any]]:
        try:
            return [
                assessment_to_item(a)
                for a in self._security.assessments.list(scope=f"/subscriptions/{scope.subscription_id}")
            ]
        except AzureError as e:
            raise SecurityFeedError("assessments", str(e)) from e
