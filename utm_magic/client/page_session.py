"""Per-page mutable counters, owned by one tracker instance."""

import random
from dataclasses import dataclass, field
from typing import Callable, List, Optional, Tuple

from .events import MouseSample

SCROLL_THRESHOLDS = (25, 50, 75, 90)


@dataclass
class PageSession:
    """
    Pageview sequencing and scroll bookkeeping for one page lifetime.
    Client-side navigations advance it; a full reload starts a new one.
    """
    entry_time: float
    sequence: int = 1
    previous_page_url: Optional[str] = None
    scroll_depth: int = 0
    last_scroll_check: Optional[float] = None
    current_section_id: Optional[str] = None

    def next_pageview(self, url: str, now: float) -> Tuple[Optional[str], int, Optional[int]]:
        """
        Advance to a new pageview. Returns the previous page URL, this
        pageview's sequence number and the milliseconds spent on the
        previous page.
        """
        previous = self.previous_page_url
        time_on_previous = int((now - self.entry_time) * 1000) if previous else None
        sequence = self.sequence

        self.entry_time = now
        self.previous_page_url = url
        self.sequence += 1
        self.reset_scroll()
        return previous, sequence, time_on_previous

    def reset_scroll(self) -> None:
        self.scroll_depth = 0
        self.last_scroll_check = None
        self.current_section_id = None

    def scroll_check_due(self, now: float, throttle: float) -> bool:
        """At most one scroll evaluation per throttle window."""
        if self.last_scroll_check is not None and now - self.last_scroll_check < throttle:
            return False
        self.last_scroll_check = now
        return True

    def crossed_threshold(self, depth: int) -> bool:
        """Record depth when it crosses the next reporting threshold."""
        for threshold in SCROLL_THRESHOLDS:
            if self.scroll_depth < threshold <= depth:
                self.scroll_depth = depth
                return True
        return False

    def enter_section(self, section_id: Optional[str]) -> bool:
        if section_id and section_id != self.current_section_id:
            self.current_section_id = section_id
            return True
        return False


@dataclass
class MouseBuffer:
    """Sampled pointer positions waiting to be sent as one event."""
    sample_rate: float
    batch_size: int = 50
    rng: Callable[[], float] = random.random
    samples: List[MouseSample] = field(default_factory=list)

    def add(self, x: float, y: float, t: float) -> bool:
        """
        Keep the sample with probability `sample_rate`. Returns True when
        the buffer has reached its batch size and should be flushed.
        """
        if self.rng() >= self.sample_rate:
            return False
        self.samples.append(MouseSample(x=x, y=y, t=t))
        return len(self.samples) >= self.batch_size

    def drain(self) -> List[MouseSample]:
        samples, self.samples = self.samples, []
        return samples

    def __len__(self) -> int:
        return len(self.samples)


@dataclass
class PageContext:
    """What the host page reports about itself; navigation updates it."""
    url: str
    title: Optional[str] = None
    referrer: Optional[str] = None
    viewport_width: Optional[int] = None
    viewport_height: Optional[int] = None
    user_agent: Optional[str] = None
    language: Optional[str] = None
