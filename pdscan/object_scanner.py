# pdscan/object_scanner.py
"""
Storage walking logic.

- iter_fields enumerates accounts -> containers -> objects -> metadata key/value pairs,
  depth-first, in whatever order the backend returns them.
- A StorageAccessError inside one account is logged and that account is dropped,
  including fields read before the failure; the remaining accounts are still scanned.
- Content scanning is an optional mode; by default only metadata is inspected.
- A cancel_event stops the walk between objects and keeps what was already collected.
"""

import logging
import threading
from concurrent.futures import ThreadPoolExecutor, as_completed
from typing import Dict, Iterable, Iterator, List, Optional, Protocol, Tuple

from config import DEFAULT_CONTENT_MAX_BYTES
from errors import FatalSetupError, StorageAccessError
from models import (
    DetectionMethod,
    Finding,
    ScanScope,
    ScanStats,
    ScannedField,
    StorageAccount,
    StorageContainer,
    StorageObject,
)
from pdscan.classifier import classify_fields
from pdscan.patterns import PatternRegistry

logger = logging.getLogger("cloud_scanner.object_scanner")


class StorageBackend(Protocol):
    """
    Storage enumeration API the scanner reads from.

    Implementations raise StorageAccessError for any per-resource failure.
    """

    def list_accounts(self, resource_group: Optional[str] = None) -> Iterable[StorageAccount]: ...

    def list_containers(self, account: StorageAccount) -> Iterable[StorageContainer]: ...

    def list_objects(self, container: StorageContainer) -> Iterable[StorageObject]: ...

    def get_metadata(self, obj: StorageObject) -> Dict[str, str]: ...

    def read_content(self, obj: StorageObject, max_bytes: int) -> bytes: ...


def _is_cancelled(cancel_event: Optional[threading.Event]) -> bool:
    return cancel_event is not None and cancel_event.is_set()


def _object_fields(backend: StorageBackend, obj: StorageObject, stats: ScanStats,
                   scan_content: bool, content_max_bytes: int) -> List[ScannedField]:
    fields: List[ScannedField] = []
    try:
        metadata = obj.metadata if obj.metadata is not None else backend.get_metadata(obj)
    except StorageAccessError as e:
        logger.error("Could not read metadata for %s: %s", obj.location, e)
        stats.failed_objects.append(obj.location)
        return fields

    for key, value in (metadata or {}).items():
        fields.append(ScannedField(obj.location, str(key), str(value)))

    if scan_content:
        try:
            body = backend.read_content(obj, content_max_bytes)
        except StorageAccessError as e:
            logger.error("Could not read content for %s: %s", obj.location, e)
            stats.failed_objects.append(obj.location)
        else:
            if body:
                text = body.decode("utf-8", errors="replace")
                fields.append(ScannedField(obj.location, "content", text, DetectionMethod.CONTENT_ANALYSIS))
    return fields


def _scan_account(backend: StorageBackend, account: StorageAccount, stats: ScanStats,
                  scan_content: bool, content_max_bytes: int,
                  cancel_event: Optional[threading.Event]) -> Iterator[ScannedField]:
    """
    Yield every field of one account once the account has been walked.

    Fields are held back until the walk ends: an account that fails part way
    contributes nothing, while a cancelled walk keeps what it already read.
    """
    logger.info("Scanning storage account: %s", account.name)
    buffered: List[ScannedField] = []
    try:
        for container in backend.list_containers(account):
            logger.debug("Scanning container %s/%s", account.name, container.name)
            for obj in backend.list_objects(container):
                if _is_cancelled(cancel_event):
                    stats.cancelled = True
                    yield from buffered
                    return
                buffered.extend(_object_fields(backend, obj, stats, scan_content, content_max_bytes))
    except StorageAccessError as e:
        logger.error("Error scanning storage account %s: %s", account.name, e)
        stats.failed_accounts.append(account.name)
        return
    stats.accounts_scanned += 1
    yield from buffered


def _collect_account(backend: StorageBackend, account: StorageAccount, scan_content: bool,
                     content_max_bytes: int,
                     cancel_event: Optional[threading.Event]) -> Tuple[List[ScannedField], ScanStats]:
    local = ScanStats()
    fields = list(_scan_account(backend, account, local, scan_content, content_max_bytes, cancel_event))
    return fields, local


def _merge_stats(into: ScanStats, other: ScanStats) -> None:
    into.accounts_scanned += other.accounts_scanned
    into.failed_accounts.extend(other.failed_accounts)
    into.failed_objects.extend(other.failed_objects)
    into.cancelled = into.cancelled or other.cancelled


def _list_accounts(backend: StorageBackend, scope: ScanScope) -> List[StorageAccount]:
    try:
        accounts = list(backend.list_accounts(scope.resource_group))
    except StorageAccessError as e:
        raise FatalSetupError(f"Could not enumerate storage accounts: {e}") from e
    logger.info("Found %d storage account(s) in %s", len(accounts), scope.describe())
    return accounts


def iter_fields(
    backend: StorageBackend,
    scope: ScanScope,
    stats: Optional[ScanStats] = None,
    scan_content: bool = False,
    content_max_bytes: int = DEFAULT_CONTENT_MAX_BYTES,
    max_workers: int = 1,
    cancel_event: Optional[threading.Event] = None,
) -> Iterator[ScannedField]:
    """
    Lazily yield (location, field, value, method) for every object in scope.

    - Zero accounts is not an error; the sequence is simply empty.
    - Failing to list accounts at all raises FatalSetupError.
    - With max_workers > 1 accounts are scanned concurrently and fields
      from different accounts arrive in completion order.
    - Calling iter_fields again restarts the walk from the backend.
    """
    stats = stats if stats is not None else ScanStats()
    accounts = _list_accounts(backend, scope)

    if max_workers <= 1 or len(accounts) <= 1:
        for account in accounts:
            if _is_cancelled(cancel_event):
                stats.cancelled = True
                break
            yield from _scan_account(backend, account, stats, scan_content, content_max_bytes, cancel_event)
    else:
        with ThreadPoolExecutor(max_workers=max_workers) as pool:
            futures = [
                pool.submit(_collect_account, backend, account, scan_content, content_max_bytes, cancel_event)
                for account in accounts
            ]
            for future in as_completed(futures):
                fields, local = future.result()
                _merge_stats(stats, local)
                yield from fields

    if stats.cancelled:
        logger.warning("Scan cancelled; returning results collected so far")


def scan(
    backend: StorageBackend,
    scope: ScanScope,
    registry: Optional[PatternRegistry] = None,
    stats: Optional[ScanStats] = None,
    scan_content: bool = False,
    content_max_bytes: int = DEFAULT_CONTENT_MAX_BYTES,
    max_workers: int = 1,
    cancel_event: Optional[threading.Event] = None,
) -> List[Finding]:
    """
    Walk the scope and classify every field. Returns all findings collected.
    """
    fields = iter_fields(
        backend,
        scope,
        stats=stats,
        scan_content=scan_content,
        content_max_bytes=content_max_bytes,
        max_workers=max_workers,
        cancel_event=cancel_event,
    )
    findings = classify_fields(fields, registry)
    logger.info("Personal data discovery found %d finding(s)", len(findings))
    return findings
