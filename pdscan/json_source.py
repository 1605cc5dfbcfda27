# pdscan/json_source.py
"""
Dummy-mode backend: storage and security feed described by a JSON document.

Expected shape:
{
  "subscriptionId": "00000000-0000-0000-0000-000000000000",
  "accounts": [
    { "name": "acct1", "resourceGroup": "rg-data",
      "containers": [
        { "name": "docs",
          "blobs": [ { "name": "a.txt", "metadata": { "note": "..." }, "content": "..." } ] }
      ] },
    { "name": "locked", "error": "AuthorizationPermissionMismatch" }
  ],
  "alerts": [ { "name": "...", "description": "...", "severity": "High", "status": "Active" } ],
  "assessments": [ ... ],
  "alertsError": "optional: simulate an unavailable alert feed"
}

An "error" key on an account, container or blob simulates an access failure at that level.
An entry with the wrong shape fails the same way, as "MalformedAccount" or "MalformedBlob".
"""

from typing import Any, Dict, List, Optional

from errors import SecurityFeedError, StorageAccessError
from models import ScanScope, StorageAccount, StorageContainer, StorageObject


def _entries(raw: Dict[str, Any], key: str, resource: str, reason: str) -> List[Dict[str, Any]]:
    """
    Return raw[key] as a list of named objects, or raise StorageAccessError(resource, reason).
    """
    value = raw.get(key)
    if value is None:
        return []
    if not isinstance(value, list):
        raise StorageAccessError(resource, reason)
    for entry in value:
        if not isinstance(entry, dict) or not isinstance(entry.get("name"), str):
            raise StorageAccessError(resource, reason)
    return value


class JsonBackend:
    """StorageBackend and SecurityFeed over a loaded JSON dict."""

    def __init__(self, data: Dict[str, Any]):
        self._data = data
        self._accounts: Dict[str, Any] = {}
        accounts = data.get("accounts")
        if isinstance(accounts, list):
            for i, raw in enumerate(accounts):
                name = raw.get("name") if isinstance(raw, dict) else None
                self._accounts[name if isinstance(name, str) else f"accounts[{i}]"] = raw

    @property
    def subscription_id(self) -> Optional[str]:
        return self._data.get("subscriptionId")

    def _account(self, name: str) -> Dict[str, Any]:
        raw = self._accounts.get(name)
        if raw is None:
            raise StorageAccessError(name, "ResourceNotFound")
        if not isinstance(raw, dict) or not isinstance(raw.get("name"), str):
            raise StorageAccessError(name, "MalformedAccount")
        if raw.get("error"):
            raise StorageAccessError(name, raw["error"])
        return raw

    def _container(self, container: StorageContainer) -> Dict[str, Any]:
        account = container.account.name
        for c in _entries(self._account(account), "containers", account, "MalformedAccount"):
            if c["name"] == container.name:
                if c.get("error"):
                    raise StorageAccessError(f"{account}/{container.name}", c["error"])
                return c
        raise StorageAccessError(f"{account}/{container.name}", "ContainerNotFound")

    def _blob(self, obj: StorageObject) -> Dict[str, Any]:
        container = self._container(obj.container)
        for b in _entries(container, "blobs", obj.container.account.name, "MalformedAccount"):
            if b["name"] == obj.name:
                if b.get("error"):
                    raise StorageAccessError(obj.location, b["error"])
                return b
        raise StorageAccessError(obj.location, "BlobNotFound")

    def list_accounts(self, resource_group: Optional[str] = None) -> List[StorageAccount]:
        if not isinstance(self._data.get("accounts", []), list):
            raise StorageAccessError("accounts", "MalformedDocument")
        accounts: List[StorageAccount] = []
        for name, raw in self._accounts.items():
            rg = raw.get("resourceGroup") if isinstance(raw, dict) else None
            if not isinstance(rg, str):
                rg = None
            if resource_group and (rg or "").lower() != resource_group.lower():
                continue
            accounts.append(StorageAccount(name=name, resource_group=rg))
        return accounts

    def list_containers(self, account: StorageAccount) -> List[StorageContainer]:
        raw = self._account(account.name)
        return [
            StorageContainer(account=account, name=c["name"])
            for c in _entries(raw, "containers", account.name, "MalformedAccount")
        ]

    def list_objects(self, container: StorageContainer) -> List[StorageObject]:
        prefix = f"{container.account.name}/{container.name}"
        blobs = _entries(self._container(container), "blobs", container.account.name, "MalformedAccount")
        return [
            StorageObject(container=container, name=b["name"], location=f"{prefix}/{b['name']}")
            for b in blobs
        ]

    def get_metadata(self, obj: StorageObject) -> Dict[str, str]:
        metadata = self._blob(obj).get("metadata") or {}
        if not isinstance(metadata, dict):
            raise StorageAccessError(obj.location, "MalformedBlob")
        return dict(metadata)

    def read_content(self, obj: StorageObject, max_bytes: int) -> bytes:
        content = self._blob(obj).get("content") or ""
        if not isinstance(content, str):
            raise StorageAccessError(obj.location, "MalformedBlob")
        return content.encode("utf-8")[:max_bytes]

    def _feed(self, key: str) -> List[Dict[str, Any]]:
        if self._data.get(f"{key}Error"):
            raise SecurityFeedError(key, self._data[f"{key}Error"])
        items = self._data.get(key) or []
        if not isinstance(items, list) or not all(isinstance(i, dict) for i in items):
            raise SecurityFeedError(key, "MalformedFeed")
        return list(items)

    def list_alerts(self, scope: ScanScope) -> List[Dict[str, Any]]:
        return self._feed("alerts")

    def list_assessments(self, scope: ScanScope) -> List[Dict[str, Any]]:
        return self._feed("assessments")
