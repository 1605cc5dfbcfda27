# main.py
"""
CLI entrypoint for the personal-data discovery scanner.

- Supports three modes:
  * azure: storage accounts and Defender for Cloud in a live subscription
  * aws: S3 buckets, GuardDuty and Security Hub in a live account
  * dummy: read storage and security data from a JSON file (offline testing)
- Prints a colorful summary for every run that reaches report assembly.
- Optionally writes JSON, CSV, and HTML reports.
- Exit codes: 0 success, 1 fatal setup error, 2 partial scan with --fail-on-partial.
"""

import argparse
import logging
import sys
import threading
from typing import Optional

import boto3
from azure.identity import DefaultAzureCredential

from config import (
    DEFAULT_AWS_REGION,
    DEFAULT_CONTENT_MAX_BYTES,
    DEFAULT_MAX_WORKERS,
    DEFAULT_REPORT_DIR,
    EXIT_FATAL,
    EXIT_OK,
    EXIT_PARTIAL,
)
from errors import FatalSetupError, PatternRegistryError
from models import ComplianceReport, ScanScope, ScanStats
from pdscan.aws_s3 import AwsSecurityFeed, S3Backend, verify_aws_session
from pdscan.azure_storage import AzureBlobBackend, AzureSecurityFeed, verify_azure_session
from pdscan.json_source import JsonBackend
from pdscan.object_scanner import StorageBackend, scan
from pdscan.patterns import PatternRegistry, load_pattern_registry
from pdscan.recommendations import recommend
from pdscan.report import assemble
from pdscan.security_findings import SecurityFeed, fetch_relevant
from utils import load_json_file, print_summary_and_report_path, save_report

logger = logging.getLogger("cloud_scanner")


def run_scan(backend: StorageBackend, feed: SecurityFeed, scope: ScanScope,
             registry: Optional[PatternRegistry] = None, scan_content: bool = False,
             content_max_bytes: int = DEFAULT_CONTENT_MAX_BYTES, max_workers: int = 1,
             timeout: Optional[float] = None) -> ComplianceReport:
    """
    Discover personal data, merge security findings, derive recommendations and assemble the report.

    When timeout elapses the storage walk stops and the report covers what was collected.
    """
    stats = ScanStats()
    cancel_event = threading.Event()
    timer = None
    if timeout:
        timer = threading.Timer(timeout, cancel_event.set)
        timer.daemon = True
        timer.start()
    try:
        findings = scan(
            backend,
            scope,
            registry=registry,
            stats=stats,
            scan_content=scan_content,
            content_max_bytes=content_max_bytes,
            max_workers=max_workers,
            cancel_event=cancel_event,
        )
    finally:
        if timer:
            timer.cancel()

    security_findings = fetch_relevant(feed, scope, stats)
    recommendations = recommend(findings, security_findings)
    report = assemble(scope, findings, security_findings, recommendations, stats)
    logger.info("Overall risk: %s", report.status["overallRisk"])
    return report


def _scan_with(backend: StorageBackend, feed: SecurityFeed, scope: ScanScope, args,
               registry: PatternRegistry) -> ComplianceReport:
    return run_scan(
        backend,
        feed,
        scope,
        registry=registry,
        scan_content=args.scan_content,
        content_max_bytes=args.content_max_bytes,
        max_workers=args.max_workers,
        timeout=args.timeout,
    )


def run_dummy(args, scope: ScanScope, registry: PatternRegistry) -> ComplianceReport:
    """
    Run the scanner in dummy mode using a local JSON file.
    No cloud access is required in this mode.
    """
    logger.info("Running in dummy mode using file: %s", args.file)
    try:
        data = load_json_file(args.file)
    except (FileNotFoundError, ValueError) as e:
        raise FatalSetupError(str(e)) from e
    if not isinstance(data, dict):
        raise FatalSetupError(f"{args.file} must contain a JSON object")
    backend = JsonBackend(data)
    if backend.subscription_id and backend.subscription_id != scope.subscription_id:
        raise FatalSetupError(
            f"File describes subscription {backend.subscription_id}, not {scope.subscription_id}"
        )
    return _scan_with(backend, backend, scope, args, registry)


def run_aws(args, scope: ScanScope, registry: PatternRegistry) -> ComplianceReport:
    """
    Run the scanner against a live AWS account.

    Credential model:
    - AWS Vault (or similar) injects temporary credentials via environment variables.
    - --subscription-id is the AWS account id the credentials must belong to.
    """
    region = args.region or DEFAULT_AWS_REGION
    logger.info("Running in live AWS mode (region=%s)", region)
    session = boto3.Session(region_name=region)
    verify_aws_session(session, scope.subscription_id)
    return _scan_with(S3Backend(session), AwsSecurityFeed(session), scope, args, registry)


def run_azure(args, scope: ScanScope, registry: PatternRegistry) -> ComplianceReport:
    """
    Run the scanner against a live Azure subscription with DefaultAzureCredential.
    """
    logger.info("Running in live Azure mode (subscription=%s)", scope.subscription_id)
    credential = DefaultAzureCredential()
    verify_azure_session(credential, scope.subscription_id)
    backend = AzureBlobBackend(credential, scope.subscription_id)
    feed = AzureSecurityFeed(credential, scope.subscription_id)
    try:
        return _scan_with(backend, feed, scope, args, registry)
    finally:
        backend.close()
        feed.close()


RUNNERS = {"azure": run_azure, "aws": run_aws, "dummy": run_dummy}


def parse_args(argv=None):
    p = argparse.ArgumentParser(
        description="Personal data discovery and classification scanner for cloud storage."
    )
    p.add_argument(
        "--mode",
        choices=sorted(RUNNERS),
        default="azure",
        help="Run mode: azure (live), aws (live) or dummy (JSON)",
    )
    p.add_argument(
        "--subscription-id",
        required=True,
        help="Azure subscription id, or AWS account id in aws mode",
    )
    p.add_argument(
        "--resource-group",
        help="Only scan storage accounts in this resource group (S3: bucket tag)",
    )
    p.add_argument(
        "--file",
        help="Path to dummy JSON file (required for dummy mode)",
    )
    p.add_argument(
        "--region",
        help="AWS region (optional)",
    )
    p.add_argument(
        "--generate-report",
        action="store_true",
        help="Write JSON, CSV and HTML reports",
    )
    p.add_argument(
        "--output-path",
        help="Path of the JSON report; CSV and HTML are written next to it (implies --generate-report)",
    )
    p.add_argument(
        "--report-dir",
        default=DEFAULT_REPORT_DIR,
        help=f"Directory to save reports (default: {DEFAULT_REPORT_DIR})",
    )
    p.add_argument(
        "--scan-content",
        action="store_true",
        help="Also scan the first bytes of each object body, not only metadata",
    )
    p.add_argument(
        "--content-max-bytes",
        type=int,
        default=DEFAULT_CONTENT_MAX_BYTES,
        help="Bytes read per object when --scan-content is set",
    )
    p.add_argument(
        "--max-workers",
        type=int,
        default=DEFAULT_MAX_WORKERS,
        help="Storage accounts scanned concurrently (default: sequential)",
    )
    p.add_argument(
        "--timeout",
        type=float,
        help="Stop scanning storage after this many seconds and report partial results",
    )
    p.add_argument(
        "--patterns",
        help="JSON pattern registry replacing the built-in detection patterns",
    )
    p.add_argument(
        "--print-table",
        action="store_true",
        help="Print full findings table to stdout",
    )
    p.add_argument(
        "--fail-on-partial",
        action="store_true",
        help="Exit with status 2 when any account, object or feed could not be read",
    )
    p.add_argument(
        "--log-level",
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level (default: INFO)",
    )
    return p.parse_args(argv)


def main(argv=None) -> int:
    args = parse_args(argv)
    logging.basicConfig(level=getattr(logging, args.log_level))

    if args.mode == "dummy" and not args.file:
        logger.error("dummy mode requires --file path to JSON")
        return EXIT_FATAL

    scope = ScanScope(subscription_id=args.subscription_id, resource_group=args.resource_group)
    try:
        registry = load_pattern_registry(args.patterns)
        report = RUNNERS[args.mode](args, scope, registry)
    except (FatalSetupError, PatternRegistryError) as e:
        logger.error("Scan aborted: %s", e)
        return EXIT_FATAL

    report_paths = None
    if args.generate_report or args.output_path:
        report_paths = save_report(report, mode=args.mode, out_dir=args.report_dir, output_path=args.output_path)
    print_summary_and_report_path(report, report_paths, print_full_table=args.print_table)

    if args.fail_on_partial and report.status["partial"]:
        return EXIT_PARTIAL
    return EXIT_OK


if __name__ == "__main__":
    sys.exit(main())
