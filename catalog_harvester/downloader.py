"""Bounded-concurrency artifact downloader with idempotent skip and 403 halt."""

import logging
from concurrent.futures import FIRST_COMPLETED, Future, ThreadPoolExecutor, wait
from typing import Dict, Iterable, Iterator, Optional, Tuple

from .cache import ArtifactCache
from .errors import AccessDeniedError, HarvestError, HttpStatusError
from .fetcher import Fetcher
from .models import FORBIDDEN, BatchSummary, DownloadOutcome, DownloadTask
from .progress import NullProgress, ProgressReporter, SafeProgress

logger = logging.getLogger("catalog_harvester")


class Downloader:
    def __init__(self, fetcher: Fetcher, cache: ArtifactCache):
        self.fetcher = fetcher
        self.cache = cache

    def fetch_and_store(self, task: DownloadTask) -> DownloadOutcome:
        """Fetch one artifact and persist it. Never raises for network trouble."""
        try:
            data = self.fetcher.get_bytes(task.url)
        except HttpStatusError as e:
            if e.status_code == 404:
                return DownloadOutcome.not_found()
            if e.status_code == 403:
                return DownloadOutcome.failed(FORBIDDEN)
            return DownloadOutcome.failed(f"HTTP {e.status_code}")
        except HarvestError as e:
            return DownloadOutcome.failed(str(e))

        try:
            self.cache.write_once(task.dest, data)
        except FileExistsError:
            # Another run got there first with the same bytes
            return DownloadOutcome.present()
        except OSError as e:
            return DownloadOutcome.failed(f"write failed: {e}")
        return DownloadOutcome.saved()

    def download_all(self, tasks: Iterable[DownloadTask],
                     max_in_flight: int) -> Iterator[Tuple[DownloadTask, DownloadOutcome]]:
        """Yield ``(task, outcome)`` pairs as they complete.

        At most ``max_in_flight`` fetches are outstanding at any time and the
        task iterable is consumed lazily. After a forbidden response no new
        fetch is admitted; fetches already running still report.
        """
        if max_in_flight < 1:
            raise ValueError(f"max_in_flight must be >= 1, got {max_in_flight}")

        halted = False
        remaining = iter(tasks)
        exhausted = False
        in_flight: Dict[Future, DownloadTask] = {}

        with ThreadPoolExecutor(max_workers=max_in_flight,
                                thread_name_prefix="download") as pool:
            while True:
                while not halted and not exhausted and len(in_flight) < max_in_flight:
                    task = next(remaining, None)
                    if task is None:
                        exhausted = True
                        break
                    if self.cache.exists(task.dest):
                        yield task, DownloadOutcome.present()
                        continue
                    in_flight[pool.submit(self.fetch_and_store, task)] = task

                if not in_flight:
                    break

                done, _ = wait(list(in_flight), return_when=FIRST_COMPLETED)
                for future in done:
                    task = in_flight.pop(future)
                    outcome = future.result()
                    if outcome.fatal and not halted:
                        logger.error(f"Forbidden: {task.url}, no new downloads will start")
                        halted = True
                    yield task, outcome

    def run_batch(self, tasks: Iterable[DownloadTask], max_in_flight: int,
                  label: str = "Downloading",
                  progress: Optional[ProgressReporter] = None) -> BatchSummary:
        """Drain ``download_all`` and tally the outcomes.

        Successes and skips advance the progress bar; failures go to the log.
        Raises ``AccessDeniedError`` after draining if the batch was halted.
        """
        tasks = list(tasks)
        progress = SafeProgress(progress or NullProgress())
        summary = BatchSummary()
        forbidden_task = None

        progress.start(len(tasks), label)
        try:
            for task, outcome in self.download_all(tasks, max_in_flight):
                summary.record(task, outcome)
                if outcome.ok:
                    progress.increment()
                    continue
                if outcome.fatal and forbidden_task is None:
                    forbidden_task = task
                logger.warning(f"Failed: {task.url} -> {task.dest}: {outcome.reason}")
        finally:
            progress.finish()

        summary.halted = forbidden_task is not None
        if forbidden_task is not None:
            raise AccessDeniedError(forbidden_task.url, forbidden_task, summary)
        return summary
