"""
proofgate/core/time.py

The only timestamp function in ProofGate.

Wire format: YYYY-MM-DDTHH:MM:SS.mmmZ
             (milliseconds, explicit Z, no +00:00, no microseconds)

Audit records and used-proof entries both stamp time through here.
"""

import re
from datetime import datetime, timezone


TIMESTAMP_RE = re.compile(
    r"^\d{4}-\d{2}-\d{2}T\d{2}:\d{2}:\d{2}\.\d{3}Z$"
)


def utc_timestamp() -> str:
    """
    Return current UTC time in wire format.
    Format: YYYY-MM-DDTHH:MM:SS.mmmZ  (exactly 3 fractional digits, Z suffix)
    """
    now = datetime.now(timezone.utc)
    ms  = now.microsecond // 1000
    return now.strftime("%Y-%m-%dT%H:%M:%S.") + f"{ms:03d}Z"


def is_wire_timestamp(value) -> bool:
    """True if value is a str in wire format."""
    return isinstance(value, str) and bool(TIMESTAMP_RE.match(value))
