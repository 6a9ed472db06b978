"""Tests for preview URL helpers."""

from __future__ import annotations

from beatshop.media_urls import (
    drive_file_id,
    looks_like_audio_url,
    resolve_audio_url,
    url_suffix,
)


def test_drive_share_links_become_direct_downloads() -> None:
    share = "https://drive.google.com/file/d/1AbC_d-9/view?usp=sharing"
    opened = "https://drive.google.com/open?id=1AbC_d-9"
    expected = "https://drive.google.com/uc?export=download&id=1AbC_d-9"
    assert drive_file_id(share) == "1AbC_d-9"
    assert resolve_audio_url(share) == expected
    assert resolve_audio_url(opened) == expected


def test_non_drive_urls_pass_through_stripped() -> None:
    url = "  https://cdn.example.com/beats/walk.mp3 "
    assert drive_file_id(url) is None
    assert resolve_audio_url(url) == "https://cdn.example.com/beats/walk.mp3"
    assert drive_file_id("https://example.com/file/d/abc") is None


def test_url_suffix_and_audio_detection() -> None:
    assert url_suffix("https://cdn.example.com/a/Walk.MP3?x=1") == ".mp3"
    assert url_suffix("https://cdn.example.com/a/walk") == ""
    assert looks_like_audio_url("https://cdn.example.com/a/walk.wav")
    assert looks_like_audio_url("https://drive.google.com/file/d/abc/view")
    assert not looks_like_audio_url("https://cdn.example.com/a/cover.png")
