"""Process-wide service statistics.

The HTTP layer runs pipelines in worker threads, so every update happens
under a single lock.
"""

import threading
import time
from typing import Any


def format_uptime(seconds: int) -> str:
    days, rest = divmod(max(0, int(seconds)), 86400)
    hours, rest = divmod(rest, 3600)
    minutes, secs = divmod(rest, 60)
    return f"{days}d {hours}h {minutes}m {secs}s"


class StatsRegistry:
    def __init__(self) -> None:
        self._lock = threading.Lock()
        self.requests_processed = 0
        self.images_compressed = 0
        self.bytes_saved = 0
        self.processing_errors = 0
        self.start_time = time.time()

    def record_request(self) -> None:
        with self._lock:
            self.requests_processed += 1

    def record_success(self, original_size: int, final_size: int) -> None:
        # Outputs can be larger than the input, so bytes_saved may go down.
        with self._lock:
            self.images_compressed += 1
            self.bytes_saved += original_size - final_size

    def record_error(self) -> None:
        with self._lock:
            self.processing_errors += 1

    def snapshot(self) -> dict[str, Any]:
        with self._lock:
            requests = self.requests_processed
            data = {
                "requests_processed": requests,
                "images_compressed": self.images_compressed,
                "bytes_saved": self.bytes_saved,
                "average_bytes_saved": self.bytes_saved / requests if requests else 0.0,
                "processing_errors": self.processing_errors,
                "start_time": self.start_time,
            }
        data["uptime"] = format_uptime(int(time.time() - self.start_time))
        return data
