"""
Central configuration and tunable constants.

- Default region, report directory and worker count can be overridden by CLI args or environment variables.
- Relevance keywords and GDPR citations are centralized for easy tuning.
"""

import os

# AWS Vault model:
# - We do NOT use a default profile (AWS Vault injects credentials)
# - We DO need a default region for boto3.Session(region_name=...)
DEFAULT_AWS_PROFILE = None
DEFAULT_AWS_REGION = os.environ.get("AWS_REGION", "eu-west-1")

DEFAULT_REPORT_DIR = os.environ.get("PDSCAN_REPORT_DIR", "reports")

# Accounts scanned concurrently; 1 keeps the scan sequential.
DEFAULT_MAX_WORKERS = int(os.environ.get("PDSCAN_MAX_WORKERS", "1"))

# Bytes read from each object body when content scanning is enabled.
DEFAULT_CONTENT_MAX_BYTES = int(os.environ.get("PDSCAN_CONTENT_MAX_BYTES", str(64 * 1024)))

# Bucket tag used as the resource-group equivalent on S3.
RESOURCE_GROUP_TAG = os.environ.get("PDSCAN_RESOURCE_GROUP_TAG", "ResourceGroup")

# Security feed items are kept only if name or description mentions one of these.
RELEVANCE_KEYWORDS = ("data", "personal", "privacy", "gdpr", "encryption", "access")

COMPLIANCE_IMPACT = "May impact GDPR Article 32 - Security of processing"

# GDPR citations attached to recommendations
GDPR_ARTICLE_9 = "GDPR Article 9 - Processing of special categories of personal data"
GDPR_ARTICLE_32 = "GDPR Article 32 - Security of processing"

# Process exit codes
EXIT_OK = 0
EXIT_FATAL = 1
EXIT_PARTIAL = 2
