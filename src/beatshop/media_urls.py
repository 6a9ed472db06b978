"""Audio resource URL helpers."""

from __future__ import annotations

import re
from urllib.parse import parse_qs, urlparse

AUDIO_SUFFIXES = frozenset(
    {".aac", ".flac", ".m4a", ".mp3", ".ogg", ".opus", ".wav", ".wave"}
)
_DRIVE_HOSTS = frozenset({"drive.google.com", "docs.google.com"})
_DRIVE_FILE_PATH = re.compile(r"^/file/d/([A-Za-z0-9_-]+)")
DRIVE_DOWNLOAD_URL = "https://drive.google.com/uc?export=download&id={file_id}"


def drive_file_id(url: str) -> str | None:
    """Return the Drive file id from a share/view/open link, if present."""
    parsed = urlparse(url.strip())
    if parsed.scheme not in {"http", "https"} or parsed.netloc not in _DRIVE_HOSTS:
        return None
    match = _DRIVE_FILE_PATH.match(parsed.path)
    if match:
        return match.group(1)
    ids = parse_qs(parsed.query).get("id")
    if ids and ids[0]:
        return ids[0]
    return None


def resolve_audio_url(url: str) -> str:
    """Rewrite Google Drive share links to direct downloads; pass others through."""
    file_id = drive_file_id(url)
    if file_id is None:
        return url.strip()
    return DRIVE_DOWNLOAD_URL.format(file_id=file_id)


def url_suffix(url: str) -> str:
    """Lower-cased path suffix of a URL (`.mp3`), or an empty string."""
    path = urlparse(url).path
    name = path.rsplit("/", 1)[-1]
    if "." not in name:
        return ""
    return "." + name.rsplit(".", 1)[-1].lower()


def looks_like_audio_url(url: str) -> bool:
    return url_suffix(url) in AUDIO_SUFFIXES or drive_file_id(url) is not None
