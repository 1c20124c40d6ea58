from datetime import UTC, datetime


def now() -> datetime:
    return datetime.now(UTC)


def unix_now() -> int:
    """Current wall-clock time as whole Unix seconds."""
    return int(now().timestamp())


def from_unix(timestamp: int) -> datetime:
    return datetime.fromtimestamp(timestamp, UTC)
