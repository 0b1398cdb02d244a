"""Utility functions for CLI output."""

from common.types import UploadOutcome


def format_file_size(size_bytes: int) -> str:
    """
    Format file size in bytes to human-readable format with appropriate unit.

    Uses binary units (1024-based) and automatically selects the most
    appropriate unit (B, KiB, MiB, GiB, TiB).

    Args:
        size_bytes: File size in bytes

    Returns:
        Formatted string with size and unit (e.g., "1.50 MiB", "512 B")
    """
    if size_bytes < 1024:
        return f"{size_bytes} B"

    units = ['KiB', 'MiB', 'GiB', 'TiB']
    size = size_bytes / 1024.0

    for unit in units:
        if size < 1024.0:
            return f"{size:.2f} {unit}"
        size /= 1024.0

    return f"{size:.2f} PiB"


def format_outcome(outcome: UploadOutcome) -> str:
    """Summarize a completed upload, one line per part."""
    session = outcome.session
    lines = [
        f"Uploaded {format_file_size(outcome.digest.size)} to {session.bucket}/{session.key}",
        f"Upload ID: {session.upload_id}",
        f"MD5: {outcome.digest.md5_hex}",
        f"SHA256: {outcome.digest.sha256_hex}",
    ]
    if outcome.etag:
        lines.append(f"ETag: {outcome.etag}")
    for part, chunk in zip(outcome.parts, outcome.digest.chunks):
        lines.append(f"  part {part.part_number}: {format_file_size(chunk.length)} etag={part.etag}")
    return "\n".join(lines)
