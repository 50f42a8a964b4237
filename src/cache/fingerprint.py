# src/cache/fingerprint.py - v4
"""Deterministic cache keys for enhancement requests.

Three key kinds are derived here, all pure functions without I/O:

  project signature  dependency manifest + project type
  context key        project signature + framework set (no prompt)
  fingerprint        normalized prompt + signature + frameworks + requirements
  request digest     file, file content, style and caller facts of one request

Key material is canonicalized before hashing: dict keys sorted, list
members lower-cased, de-duplicated and sorted, prompt whitespace collapsed.
Two requests built with different field insertion order always map to the
same key. Hashing uses 64-bit FNV-1a rendered as 16 hex chars.
"""

from __future__ import annotations

import json
import re
from collections.abc import Iterable
from typing import Any

_FNV64_OFFSET = 0xCBF29CE484222325
_FNV64_PRIME = 0x100000001B3
_MASK64 = 0xFFFFFFFFFFFFFFFF

FINGERPRINT_LENGTH = 16


def fnv1a_64(data: bytes) -> int:
    """64-bit FNV-1a hash."""
    h = _FNV64_OFFSET
    for byte in data:
        h ^= byte
        h = (h * _FNV64_PRIME) & _MASK64
    return h


def hash_hex(data: str) -> str:
    """FNV-1a of a UTF-8 string as a fixed-length hex digest."""
    return f"{fnv1a_64(data.encode('utf-8')):0{FINGERPRINT_LENGTH}x}"


def normalize_prompt(prompt: str) -> str:
    """Lowercase, trim and collapse whitespace."""
    return re.sub(r"\s+", " ", prompt.strip().lower())


def normalize_terms(terms: Iterable[str] | None) -> list[str]:
    """Lower-case, strip, drop empties, de-duplicate and sort."""
    if not terms:
        return []
    return sorted({t.strip().lower() for t in terms if t and t.strip()})


def canonical_json(obj: Any) -> str:
    """Serialize with sorted keys and no insignificant whitespace."""
    return json.dumps(
        obj, sort_keys=True, separators=(",", ":"), ensure_ascii=False, default=str
    )


def compute_fingerprint(
    prompt: str,
    project_signature: str,
    frameworks: Iterable[str] | None,
    quality_requirements: Iterable[str] | None,
) -> str:
    """Full request fingerprint.

    Args:
        prompt: Raw user prompt; normalized before hashing.
        project_signature: Output of compute_project_signature ("" if unknown).
        frameworks: Detected frameworks, any order.
        quality_requirements: Requested quality constraints, any order.

    Returns:
        16 hex chars. Empty inputs yield the "no context" fingerprint.
    """
    payload = {
        "prompt": normalize_prompt(prompt or ""),
        "project_signature": project_signature or "",
        "frameworks": normalize_terms(frameworks),
        "quality_requirements": normalize_terms(quality_requirements),
    }
    return hash_hex(canonical_json(payload))


def compute_project_signature(
    dependencies: Iterable[str] | dict[str, Any] | None,
    project_type: str | None,
) -> str:
    """Signature of the dependency manifest and project type.

    Dependency versions are ignored when a mapping is given; only the set
    of names and the project type form the invalidation boundary.
    """
    if isinstance(dependencies, dict):
        names: Iterable[str] = dependencies.keys()
    else:
        names = dependencies or []
    payload = {
        "dependencies": normalize_terms(names),
        "project_type": (project_type or "unknown").strip().lower(),
    }
    return hash_hex(canonical_json(payload))


def compute_context_key(
    project_signature: str, frameworks: Iterable[str] | None
) -> str:
    """Key shared by raw and summarized context: '<signature>:<frameworks hash>'."""
    framework_hash = hash_hex(canonical_json(normalize_terms(frameworks)))
    return f"{project_signature or 'none'}:{framework_hash}"


def compute_request_digest(
    file: str | None,
    file_content: str | None,
    style: str | None,
    repo_facts: Iterable[str] | None,
) -> str:
    """Digest of the request-specific context fields, "" when all are empty.

    Fed into the fingerprint as a 'context:<digest>' requirement so that two
    requests differing only in the open file or style never share a cached
    response. File content is hashed verbatim; facts keep caller order.
    """
    facts = [f.strip() for f in (repo_facts or []) if f and f.strip()]
    if not (file or file_content or style or facts):
        return ""
    payload = {
        "file": file or "",
        "file_content": file_content or "",
        "style": (style or "").strip(),
        "repo_facts": facts,
    }
    return hash_hex(canonical_json(payload))
