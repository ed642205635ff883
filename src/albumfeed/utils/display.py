"""Helpers for terminal display."""


def truncate_url(url: str, max_length: int = 50) -> str:
    """Shorten a URL for table display, keeping its start and end."""
    if len(url) <= max_length:
        return url
    keep = max_length - 3
    head = keep // 2 + keep % 2
    tail = keep // 2
    return f"{url[:head]}...{url[-tail:]}"


def format_duration(seconds: int) -> str:
    """Format seconds as M:SS or H:MM:SS."""
    hours, remainder = divmod(max(seconds, 0), 3600)
    minutes, secs = divmod(remainder, 60)
    if hours:
        return f"{hours}:{minutes:02d}:{secs:02d}"
    return f"{minutes}:{secs:02d}"
