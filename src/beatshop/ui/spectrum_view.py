"""Live spectrum bars fed by a card's analyser loop."""

from __future__ import annotations

from collections.abc import Sequence

from rich.text import Text
from textual.widget import Widget

BARS = "▁▂▃▄▅▆▇█"


def bars_for_bins(bins: Sequence[int], width: int) -> str:
    """One bar per column; bins are spread across the available width."""
    if width <= 0:
        return ""
    if not bins:
        return " " * width
    count = len(bins)
    chars: list[str] = []
    for col in range(width):
        value = max(0, min(255, int(bins[min(count - 1, (col * count) // width)])))
        if value == 0:
            chars.append(" ")
            continue
        chars.append(BARS[min(len(BARS) - 1, (value * len(BARS)) // 256)])
    return "".join(chars)


class SpectrumView(Widget):
    DEFAULT_CSS = """
    SpectrumView {
        height: 1;
        color: $accent;
    }
    """

    def __init__(self, **kwargs) -> None:
        super().__init__(**kwargs)
        self.bins: list[int] = []
        self.draw_count = 0

    def set_bins(self, bins: Sequence[int]) -> None:
        self.bins = list(bins)
        self.draw_count += 1
        self.refresh()

    def clear(self) -> None:
        self.bins = []
        self.refresh()

    def render(self) -> Text:
        return Text(bars_for_bins(self.bins, self.size.width), no_wrap=True)
