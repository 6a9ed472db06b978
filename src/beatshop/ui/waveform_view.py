"""Static waveform strip with played-portion highlight and click-to-seek."""

from __future__ import annotations

from collections.abc import Sequence

from rich.text import Text
from textual.events import Click
from textual.message import Message
from textual.widget import Widget

LEVELS = " ▁▂▃▄▅▆▇█"
PLAYED_STYLE = "bold magenta"
UNPLAYED_STYLE = "grey50"
BADGE_STYLE = "bold yellow"


class WaveformSeek(Message):
    def __init__(self, fraction: float) -> None:
        super().__init__()
        self.fraction = fraction


def resample_buckets(buckets: Sequence[float], width: int) -> list[float]:
    """Stretch or shrink buckets to `width` columns by nearest index."""
    if width <= 0 or not buckets:
        return [0.0] * max(0, width)
    count = len(buckets)
    return [buckets[min(count - 1, (col * count) // width)] for col in range(width)]


def level_char(value: float) -> str:
    clamped = max(0.0, min(1.0, float(value)))
    return LEVELS[int(round(clamped * (len(LEVELS) - 1)))]


class WaveformView(Widget):
    DEFAULT_CSS = """
    WaveformView {
        height: 2;
    }
    """

    def __init__(self, **kwargs) -> None:
        super().__init__(**kwargs)
        self.buckets: tuple[float, ...] = ()
        self.progress = 0.0
        self.error: str | None = None
        self.loading = True

    def set_buckets(self, buckets: Sequence[float], *, error: str | None) -> None:
        self.buckets = tuple(buckets)
        self.error = error
        self.loading = False
        self.refresh()

    def set_progress(self, fraction: float) -> None:
        fraction = max(0.0, min(1.0, fraction))
        if fraction == self.progress:
            return
        self.progress = fraction
        self.refresh()

    def render(self) -> Text:
        width = self.size.width
        if width <= 0:
            return Text("")
        if self.loading:
            label = "Loading waveform…".ljust(width)[:width]
            return Text(label, style=UNPLAYED_STYLE)
        columns = resample_buckets(self.buckets, width)
        played = int(self.progress * width)
        text = Text(no_wrap=True)
        for index, value in enumerate(columns):
            style = PLAYED_STYLE if index < played else UNPLAYED_STYLE
            text.append(level_char(value), style=style)
        text.append("\n")
        if self.error:
            text.append(f"⚠ {self.error}"[:width], style=BADGE_STYLE)
        return text

    def on_click(self, event: Click) -> None:
        width = self.size.width
        if width <= 1 or self.loading:
            return
        fraction = max(0.0, min(1.0, event.x / (width - 1)))
        self.post_message(WaveformSeek(fraction))
        event.stop()
