# Overview: Service-layer operations for document numbering.

from __future__ import annotations

from datetime import datetime

from sqlalchemy import update

from ..extensions import db
from ..models import DocumentSequence
from imeipos.time_utils import business_date_stamp


PURCHASE_ORDER_PREFIX = "PO"
SALES_ORDER_PREFIX = "SO"


def next_document_number(
    *,
    document_type: str,
    prefix: str,
    when: datetime | None = None,
    pad: int = 4,
) -> str:
    """
    Allocate the next document number for a type on a business date,
    formatted PREFIX-YYYYMMDD-NNNN.

    Runs inside the caller's atomic unit and does not commit. If two units
    race to create the day's first sequence row, the loser's flush raises
    IntegrityError and its atomic unit re-runs, finding the row on retry.
    """
    if not document_type:
        raise ValueError("document_type is required")

    stamp = business_date_stamp(when)

    stmt = (
        update(DocumentSequence)
        .where(
            DocumentSequence.document_type == document_type,
            DocumentSequence.business_date == stamp,
        )
        .values(next_number=DocumentSequence.next_number + 1)
        .execution_options(synchronize_session=False)
    )
    result = db.session.execute(stmt)
    if result.rowcount:
        current = (
            db.session.query(DocumentSequence.next_number)
            .filter_by(document_type=document_type, business_date=stamp)
            .scalar()
        )
        next_num = current - 1
    else:
        db.session.add(DocumentSequence(document_type=document_type, business_date=stamp, next_number=2))
        db.session.flush()
        next_num = 1

    return f"{prefix}-{stamp}-{next_num:0{pad}d}"
