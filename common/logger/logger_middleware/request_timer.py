import time
from contextlib import contextmanager
from typing import Iterator


class RequestTimer:
    """Accumulates named durations (ms) for one request."""

    def __init__(self) -> None:
        self.timings: dict[str, float] = {}

    @contextmanager
    def capture(self, name: str) -> Iterator[None]:
        start = time.perf_counter()
        try:
            yield
        finally:
            duration = (time.perf_counter() - start) * 1000
            self.timings[name] = self.timings.get(name, 0) + duration

    def count(self, name: str) -> None:
        self.timings[name] = self.timings.get(name, 0) + 1

    def format_server_timing(self) -> str:
        # Formats into: db;dur=10.5, app;dur=5.2
        return ", ".join(
            f"{name};dur={dur:.2f}"
            for name, dur in self.timings.items()
            if not name.endswith("_count")
        )


__all__ = ["RequestTimer"]
