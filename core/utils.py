"""
Generic helpers shared across features
"""

from datetime import datetime, timezone


def utcnow() -> datetime:
  """Current time as a timezone aware UTC datetime"""
  return datetime.now(timezone.utc)


def as_utc(value: datetime) -> datetime:
  """
  Return value as an aware UTC datetime.

  Some database drivers (SQLite) hand back naive datetimes even for
  timezone aware columns; those are UTC already.
  """
  if value.tzinfo is None:
    return value.replace(tzinfo=timezone.utc)
  return value.astimezone(timezone.utc)


def clean_filename(filename: str | None) -> str:
  """
  Reduce a client supplied filename to a safe base name.

  Backslashes are treated as separators, empty, "." and ".." segments
  are dropped and the last remaining segment is kept. Control characters
  are removed. Returns an empty string when nothing usable is left.

  >>> clean_filename("../../etc/passwd")
  'passwd'
  >>> clean_filename("reports\\\\2024\\\\q1.pdf")
  'q1.pdf'
  """
  if not filename:
    return ""

  segments = [
    segment for segment in filename.replace("\\", "/").split("/")
    if segment.strip() not in ("", ".", "..")
  ]
  if not segments:
    return ""

  base_name = "".join(ch for ch in segments[-1] if ch.isprintable())
  return base_name.strip()
