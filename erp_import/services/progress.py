from __future__ import annotations

import sys
from typing import Any

from tqdm import tqdm
from tqdm.std import tqdm as TqdmType

"""Batch progress display with tqdm (TTY only).

The batch loader reports (percent, message) after every batch; BatchProgressBar
turns that into a single tqdm bar counting to 100. Outside a terminal (CI,
redirected output) no bar is created so logs stay free of control sequences.
"""

__all__ = [
    "BatchProgressBar",
    "is_tty_enabled",
]


def is_tty_enabled() -> bool:
    """True when stdout is a terminal."""
    return sys.stdout.isatty()


class BatchProgressBar:
    """Progress callback for load_batches backed by one tqdm bar."""

    def __init__(self, *, description: str = "Importing") -> None:
        self.description = description
        self.percent = 0
        self.last_message = ""

        self.enabled = is_tty_enabled()
        self.pbar: TqdmType[Any] | None
        if self.enabled:
            self.pbar = tqdm(
                total=100,
                desc=description,
                unit="%",
                leave=True,
                position=0,
                ncols=80,
                ascii=True,
            )
        else:
            self.pbar = None

    def update_to(self, percent: int, message: str) -> None:
        """Advance the bar to ``percent``; lower values are ignored."""
        self.last_message = message
        if percent <= self.percent:
            return
        step = percent - self.percent
        self.percent = percent
        if self.enabled and self.pbar is not None:
            self.pbar.set_postfix_str(message)
            self.pbar.update(step)

    __call__ = update_to

    def close(self) -> None:
        if self.enabled and self.pbar is not None:
            self.pbar.close()
            self.pbar = None

    def __enter__(self) -> BatchProgressBar:
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        self.close()
