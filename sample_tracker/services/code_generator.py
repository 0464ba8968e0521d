"""
Auto-Code Generator Service

Generates sequential request numbers: SMP-{seq}, starting at SMP-1001
(e.g. SMP-1001, SMP-1042).

Numbers are derived from the highest existing one rather than a row count,
so deleted drafts never cause a number to be handed out twice. The unique
constraint on ``request_number`` catches the remaining race.
"""

from sqlalchemy import Integer, cast, func

from sample_tracker.models import db
from sample_tracker.models.request import SampleRequest

REQUEST_PREFIX = "SMP"
FIRST_REQUEST_SEQ = 1001


def generate_request_number() -> str:
    """Generate next request number: SMP-1001, SMP-1002, ..."""
    start = len(REQUEST_PREFIX) + 2  # 1-based, after "SMP-"
    highest = (
        db.session.query(
            func.max(cast(func.substr(SampleRequest.request_number, start), Integer))
        )
        .filter(SampleRequest.request_number.like(f"{REQUEST_PREFIX}-%"))
        .scalar()
    )
    seq = max((highest or 0) + 1, FIRST_REQUEST_SEQ)
    return f"{REQUEST_PREFIX}-{seq}"
