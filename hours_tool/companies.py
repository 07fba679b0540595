"""Company identity resolution.

Every grouping or join on companies goes through ``resolve_company_key``
once, at ingestion, so later code compares plain keys:

    id:<company id>         when the source carries an id
    name:<normalized name>  otherwise, when it carries a name
    sin-empresa             when it carries neither
"""

from __future__ import annotations

import re
import unicodedata
from typing import Optional

from hours_tool.models import UNASSIGNED_COMPANY_ID, UNASSIGNED_COMPANY_LABEL

_WHITESPACE = re.compile(r"\s+")

UNASSIGNED_NAME_VARIANTS = {
    "sin empresa",
    "sin empresa asignada",
    "sin empresa asignado",
    "sin asignar empresa",
    "sin asignacion de empresa",
    "no company",
}


def trim_to_none(value: object) -> Optional[str]:
    if value is None:
        return None
    trimmed = str(value).strip()
    return trimmed or None


def normalize_company_label(value: object) -> Optional[str]:
    """Lower-case, strip accents and collapse whitespace."""
    trimmed = trim_to_none(value)
    if trimmed is None:
        return None
    text = unicodedata.normalize("NFD", trimmed.lower())
    text = "".join(ch for ch in text if not unicodedata.combining(ch))
    return _WHITESPACE.sub(" ", text)


def normalize_company_id(value: object) -> Optional[str]:
    trimmed = trim_to_none(value)
    if trimmed is None:
        return None
    if trimmed.lower() == UNASSIGNED_COMPANY_ID:
        return UNASSIGNED_COMPANY_ID
    return trimmed


def is_unassigned_name(value: object) -> bool:
    normalized = normalize_company_label(value)
    return normalized is None or normalized in UNASSIGNED_NAME_VARIANTS


def resolve_company_key(company_id: object = None, name: object = None) -> str:
    normalized_id = normalize_company_id(company_id)
    if normalized_id == UNASSIGNED_COMPANY_ID:
        return UNASSIGNED_COMPANY_ID
    if normalized_id:
        return f"id:{normalized_id}"
    if is_unassigned_name(name):
        return UNASSIGNED_COMPANY_ID
    return f"name:{normalize_company_label(name)}"


def company_label(value: object) -> str:
    """Display label for a free-text company name (sentinel when blank)."""
    trimmed = trim_to_none(value)
    return trimmed if trimmed else UNASSIGNED_COMPANY_LABEL


def collation_key(value: object) -> tuple[str, str]:
    """Sort key ignoring case and accents (Spanish base sensitivity).

    The original text is the tie-breaker so ordering stays deterministic.
    """
    text = "" if value is None else str(value)
    return (normalize_company_label(text) or "", text)
