# Overview: IMEI format rules and intake preflight classification.

from __future__ import annotations

import re
from collections import Counter
from dataclasses import dataclass
from typing import Iterable, Optional

from ..extensions import db
from ..models import InventoryUnit
from . import unit_lifecycle as lifecycle

IMEI_PATTERN = re.compile(r"[0-9]{15}")

CLASS_VALID_NEW = "valid_new"
CLASS_MALFORMED = "malformed"
CLASS_DUPLICATE_IN_BATCH = "duplicate_in_batch"
CLASS_EXISTS_BLOCKING = "exists_blocking"
CLASS_EXISTS_REQUIRES_CONFIRMATION = "exists_requires_confirmation"


def normalize_imei(value) -> str:
    """Strip surrounding whitespace; anything that is not a string becomes its str()."""
    if value is None:
        return ""
    return str(value).strip()


def validate_imei(imei: str) -> bool:
    """Exactly 15 ASCII digits. No Luhn check: device IMEIs in the field do not all carry one."""
    return bool(IMEI_PATTERN.fullmatch(imei or ""))


@dataclass(frozen=True)
class ImeiClassification:
    imei: str
    classification: str
    current_status: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "imei": self.imei,
            "classification": self.classification,
            "current_status": self.current_status,
        }


def existing_statuses(imeis: Iterable[str]) -> dict[str, str]:
    """One query: IMEI -> status for every IMEI that already has a unit record."""
    imeis = list(set(imeis))
    if not imeis:
        return {}
    rows = (
        db.session.query(InventoryUnit.imei, InventoryUnit.status)
        .filter(InventoryUnit.imei.in_(imeis))
        .all()
    )
    return {imei: status for imei, status in rows}


def preflight_imeis(raw_imeis: Iterable) -> list[ImeiClassification]:
    """
    Classify every IMEI of a prospective intake batch, in input order.

    Precedence: malformed, then duplicate_in_batch (every occurrence), then
    the existing-record classes. Read-only; never mutates.
    """
    imeis = [normalize_imei(v) for v in raw_imeis]
    counts = Counter(imeis)
    lookup = existing_statuses(i for i in imeis if validate_imei(i))

    results = []
    for imei in imeis:
        if not validate_imei(imei):
            results.append(ImeiClassification(imei, CLASS_MALFORMED))
            continue
        status = lookup.get(imei)
        if counts[imei] > 1:
            results.append(ImeiClassification(imei, CLASS_DUPLICATE_IN_BATCH, status))
            continue
        reintake = lifecycle.classify_reintake(status)
        if reintake == lifecycle.REINTAKE_NEW:
            results.append(ImeiClassification(imei, CLASS_VALID_NEW))
        elif reintake == lifecycle.REINTAKE_REQUIRES_CONFIRMATION:
            results.append(ImeiClassification(imei, CLASS_EXISTS_REQUIRES_CONFIRMATION, status))
        else:
            results.append(ImeiClassification(imei, CLASS_EXISTS_BLOCKING, status))
    return results
