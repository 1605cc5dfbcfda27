# pdscan/patterns.py
"""
Personal-data pattern registry.

- Each entry maps a data-type name to a compiled matcher, a classification and a GDPR category.
- The built-in registry is versioned; a JSON file with the same shape can replace it.
- Malformed entries raise PatternRegistryError when the registry is loaded, never during a scan.
"""

import re
from dataclasses import dataclass
from types import MappingProxyType
from typing import Any, Dict, Mapping, Optional

from errors import PatternRegistryError
from models import Classification
from utils import load_json_file

BUILTIN_REGISTRY_VERSION = "1.0"


@dataclass(frozen=True)
class PatternSpec:
    data_type: str
    matcher: re.Pattern
    classification: Classification
    gdpr_category: str

    def matches(self, value: str) -> bool:
        return self.matcher.search(value) is not None


@dataclass(frozen=True)
class PatternRegistry:
    version: str
    patterns: Mapping[str, PatternSpec]

    def __iter__(self):
        return iter(self.patterns.values())

    def __len__(self) -> int:
        return len(self.patterns)


BUILTIN_PATTERNS: Dict[str, Dict[str, str]] = {
    "Email": {
        "pattern": r"\b[A-Za-z0-9._%+-]+@[A-Za-z0-9.-]+\.[A-Za-z]{2,}\b",
        "classification": "PersonalData",
        "gdprCategory": "Contact Information",
    },
    "PhoneNumber": {
        "pattern": r"(?<![\w-])(?:\+\d{1,3}[-.\s]?)?\(?\d{3}\)?[-.\s]?\d{3}[-.\s]?\d{4}(?![\w-])",
        "classification": "PersonalData",
        "gdprCategory": "Contact Information",
    },
    "IPAddress": {
        "pattern": r"\b(?:(?:25[0-5]|2[0-4]\d|1?\d?\d)\.){3}(?:25[0-5]|2[0-4]\d|1?\d?\d)\b",
        "classification": "PersonalData",
        "gdprCategory": "Online Identifier",
    },
    "SSN": {
        "pattern": r"\b\d{3}-\d{2}-\d{4}\b",
        "classification": "SensitivePersonalData",
        "gdprCategory": "National Identification Number",
    },
    "CreditCard": {
        "pattern": r"\b(?:\d{4}[-\s]?){3}\d{4}\b",
        "classification": "SensitivePersonalData",
        "gdprCategory": "Financial Data",
    },
    "IBAN": {
        "pattern": r"\b[A-Z]{2}\d{2}[A-Z0-9]{11,30}\b",
        "classification": "SensitivePersonalData",
        "gdprCategory": "Financial Data",
    },
}


def _compile_entry(name: str, entry: Any) -> PatternSpec:
    if not isinstance(entry, dict):
        raise PatternRegistryError(f"Pattern {name!r} must be an object, got {type(entry).__name__}")
    missing = [k for k in ("pattern", "classification", "gdprCategory") if not entry.get(k)]
    if missing:
        raise PatternRegistryError(f"Pattern {name!r} is missing: {', '.join(missing)}")
    try:
        classification = Classification(entry["classification"])
    except ValueError:
        raise PatternRegistryError(
            f"Pattern {name!r} has unknown classification {entry['classification']!r}"
        ) from None
    try:
        matcher = re.compile(entry["pattern"])
    except re.error as e:
        raise PatternRegistryError(f"Pattern {name!r} is not a valid regex: {e}") from e
    return PatternSpec(
        data_type=name,
        matcher=matcher,
        classification=classification,
        gdpr_category=str(entry["gdprCategory"]),
    )


def build_registry(data: Dict[str, Any]) -> PatternRegistry:
    """
    Build a registry from a dict shaped like:
    {
      "version": "1.0",
      "patterns": { "Email": { "pattern": "...", "classification": "PersonalData", "gdprCategory": "..." } }
    }
    """
    version = data.get("version")
    if not version:
        raise PatternRegistryError("Pattern registry has no version")
    entries = data.get("patterns")
    if not isinstance(entries, dict) or not entries:
        raise PatternRegistryError("Pattern registry must define at least one pattern")
    compiled = {name: _compile_entry(name, entry) for name, entry in entries.items()}
    return PatternRegistry(version=str(version), patterns=MappingProxyType(compiled))


def load_pattern_registry(path: Optional[str] = None) -> PatternRegistry:
    """
    Load the registry from a JSON file, or the built-in one when path is None.
    """
    if path is None:
        return build_registry({"version": BUILTIN_REGISTRY_VERSION, "patterns": BUILTIN_PATTERNS})
    try:
        data = load_json_file(path)
    except (FileNotFoundError, ValueError) as e:
        raise PatternRegistryError(str(e)) from e
    if not isinstance(data, dict):
        raise PatternRegistryError(f"Pattern registry in {path} must be a JSON object")
    return build_registry(data)


_DEFAULT_REGISTRY = load_pattern_registry()


def lookup_patterns() -> Mapping[str, PatternSpec]:
    """Return the read-only built-in pattern table, loaded once at import."""
    return _DEFAULT_REGISTRY.patterns


def default_registry() -> PatternRegistry:
    return _DEFAULT_REGISTRY
