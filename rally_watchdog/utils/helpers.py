import datetime as _dt
import uuid


def utcnow() -> _dt.datetime:
    # Naive UTC at millisecond precision, matching what MongoDB hands back on reads
    now = _dt.datetime.now(_dt.timezone.utc).replace(tzinfo=None)
    return now.replace(microsecond=(now.microsecond // 1000) * 1000)


def new_id() -> str:
    return str(uuid.uuid4())


def format_report_number(sequence: int, now: _dt.datetime, prefix: str = "RW") -> str:
    return f"{prefix}-{now.year}-{str(sequence).zfill(6)}"


def clean_text(value) -> str:
    """Strip a possibly-None form value down to a plain string."""
    if value is None:
        return ""
    return str(value).strip()


def get_clock():
    """FastAPI dependency for the time source; overridden in tests."""
    return utcnow
