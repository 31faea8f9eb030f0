from __future__ import annotations

import sys
from typing import Any

from tqdm import tqdm
from tqdm.std import tqdm as TqdmType

"""Progress display for the remote upsert (tqdm, TTY only).

In non-TTY environments (CI, redirected output) no bar is drawn so the log
stays free of ANSI control sequences.
"""

__all__ = [
    "is_tty_enabled",
    "UpsertProgress",
]


def is_tty_enabled() -> bool:
    return sys.stdout.isatty()


class UpsertProgress:
    """Single tqdm bar over the rows sent to the remote store.

    ``update_to`` matches the ``progress`` callback of LotStore.save_lots,
    which reports the number of rows processed so far.
    """

    def __init__(self, total_rows: int, *, description: str = "Upserting lots") -> None:
        self.total_rows = total_rows
        self.description = description
        self.done = 0

        self.enabled = is_tty_enabled() and total_rows > 0
        self.pbar: TqdmType[Any] | None
        if self.enabled:
            self.pbar = tqdm(
                total=total_rows,
                desc=description,
                unit="lot",
                leave=True,
                position=0,
                ncols=80,
                ascii=True,
            )
        else:
            self.pbar = None

    def update_to(self, processed: int) -> None:
        step = processed - self.done
        self.done = processed
        if self.pbar is not None and step > 0:
            self.pbar.update(step)

    def set_postfix(self, **kwargs: Any) -> None:
        if self.pbar is not None:
            self.pbar.set_postfix(**kwargs)

    def close(self) -> None:
        if self.pbar is not None:
            self.pbar.close()
            self.pbar = None

    def __enter__(self) -> UpsertProgress:
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        self.close()
