"""Beat catalog: entry model, default listing, and browse helpers."""

from __future__ import annotations

import json
import logging
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from datetime import date, timedelta
from pathlib import Path
from typing import Any, Literal, cast, get_args

from .media_urls import looks_like_audio_url, resolve_audio_url
from .utils.time_format import parse_length

logger = logging.getLogger(__name__)

Genre = Literal[
    "DRILL",
    "DRILL MIX TRAP",
    "TRAP",
    "R&B",
    "AFRO TRAP",
    "AFRO DRILL",
    "DANCEHALL",
    "REGGAE DANCEHALL",
    "REGGAE",
]
GENRES: tuple[str, ...] = get_args(Genre)

SortOption = Literal["date-desc", "price-asc", "price-desc", "bpm-asc", "bpm-desc"]
SORT_OPTIONS: tuple[tuple[SortOption, str], ...] = (
    ("date-desc", "Newest First"),
    ("price-asc", "Price: Low to High"),
    ("price-desc", "Price: High to Low"),
    ("bpm-asc", "BPM: Low to High"),
    ("bpm-desc", "BPM: High to Low"),
)

FILTER_OPTIONS: tuple[tuple[str, str], ...] = (
    ("all", "All Beats"),
    ("DRILL", "DRILL"),
    ("DRILL MIX TRAP", "DRILL MIX TRAP"),
    ("TRAP", "TRAP"),
    ("R&B", "R&B"),
    ("featured", "Featured"),
)
NEW_RELEASE_WINDOW = timedelta(days=30)


@dataclass(frozen=True)
class CatalogEntry:
    """A purchasable beat with fixed descriptive metadata."""

    id: str
    title: str
    genre: Genre
    price: float
    audio_url: str
    bpm: int
    length: str
    date_added: date
    is_featured: bool = False
    exclusive_available: bool = True

    @property
    def length_ms(self) -> int | None:
        return parse_length(self.length)


DEFAULT_CATALOG: tuple[CatalogEntry, ...] = (
    CatalogEntry(
        id="instr-001",
        title="walk",
        genre="DRILL",
        price=24.99,
        audio_url="https://electabeats-cdn.b-cdn.net/walk.mp3",
        bpm=144,
        length="2:15",
        date_added=date(2025, 5, 2),
        is_featured=True,
    ),
    CatalogEntry(
        id="instr-002",
        title="street corner",
        genre="DRILL",
        price=31.99,
        audio_url="https://electabeats-cdn.b-cdn.net/street%20corner.mp3",
        bpm=72,
        length="2:30",
        date_added=date(2025, 6, 14),
        is_featured=True,
        exclusive_available=False,
    ),
    CatalogEntry(
        id="instr-003",
        title="Tunnel",
        genre="TRAP",
        price=34.99,
        audio_url="https://electabeats-cdn.b-cdn.net/tunnel.mp3",
        bpm=99,
        length="4:00",
        date_added=date(2025, 5, 2),
    ),
)


def find_entry(entries: Iterable[CatalogEntry], entry_id: str) -> CatalogEntry | None:
    for entry in entries:
        if entry.id == entry_id:
            return entry
    return None


def is_new(entry: CatalogEntry, *, today: date | None = None) -> bool:
    """Return whether the entry was added within the new-release window."""
    reference = today or date.today()
    return entry.date_added > reference - NEW_RELEASE_WINDOW


def filter_entries(
    entries: Sequence[CatalogEntry], filter_id: str
) -> list[CatalogEntry]:
    """Apply a browse filter: `all`, `featured`, or a genre name."""
    if filter_id == "all":
        return list(entries)
    if filter_id == "featured":
        return [entry for entry in entries if entry.is_featured]
    return [entry for entry in entries if entry.genre == filter_id]


def search_entries(entries: Sequence[CatalogEntry], query: str) -> list[CatalogEntry]:
    """Match entries by title, genre or BPM text (case-insensitive substring)."""
    needle = query.strip().lower()
    if not needle:
        return list(entries)
    return [
        entry
        for entry in entries
        if needle in entry.title.lower()
        or needle in entry.genre.lower()
        or needle in str(entry.bpm)
    ]


def sort_entries(
    entries: Sequence[CatalogEntry], option: SortOption
) -> list[CatalogEntry]:
    if option == "price-asc":
        return sorted(entries, key=lambda entry: entry.price)
    if option == "price-desc":
        return sorted(entries, key=lambda entry: entry.price, reverse=True)
    if option == "bpm-asc":
        return sorted(entries, key=lambda entry: entry.bpm)
    if option == "bpm-desc":
        return sorted(entries, key=lambda entry: entry.bpm, reverse=True)
    return sorted(entries, key=lambda entry: entry.date_added, reverse=True)


def browse(
    entries: Sequence[CatalogEntry],
    *,
    filter_id: str = "all",
    query: str = "",
    sort: SortOption = "date-desc",
) -> list[CatalogEntry]:
    """Filter, search and sort in the order the catalog view applies them."""
    return sort_entries(search_entries(filter_entries(entries, filter_id), query), sort)


def load_catalog(path: Path) -> tuple[CatalogEntry, ...]:
    """Load a catalog override file; rows that fail validation are skipped.

    Raises `OSError`/`ValueError` when the file itself is unusable so the
    caller can fall back to the built-in listing.
    """
    data = json.loads(path.read_text(encoding="utf-8"))
    rows = data.get("beats") if isinstance(data, dict) else data
    if not isinstance(rows, list):
        raise ValueError("catalog file must contain a list of beats")
    entries: list[CatalogEntry] = []
    seen: set[str] = set()
    for index, row in enumerate(rows):
        entry = _entry_from_row(row)
        if entry is None or entry.id in seen:
            logger.warning("Skipping invalid catalog row %d in %s", index, path)
            continue
        if not looks_like_audio_url(entry.audio_url):
            logger.warning(
                "Catalog row %d in %s has no recognizable audio URL; "
                "its waveform may fall back to a placeholder",
                index,
                path,
            )
        seen.add(entry.id)
        entries.append(entry)
    return tuple(entries)


def _entry_from_row(row: Any) -> CatalogEntry | None:
    if not isinstance(row, dict):
        return None
    try:
        genre = str(row["genre"]).upper()
        if genre not in GENRES:
            return None
        length = str(row["length"])
        if parse_length(length) is None:
            return None
        price = float(row["price"])
        bpm = int(row["bpm"])
        if price < 0 or bpm <= 0:
            return None
        return CatalogEntry(
            id=str(row["id"]),
            title=str(row["title"]),
            genre=cast(Genre, genre),
            price=price,
            audio_url=resolve_audio_url(str(row["audio_url"])),
            bpm=bpm,
            length=length,
            date_added=date.fromisoformat(str(row["date_added"])),
            is_featured=bool(row.get("is_featured", False)),
            exclusive_available=bool(row.get("exclusive_available", True)),
        )
    except (KeyError, TypeError, ValueError):
        return None
