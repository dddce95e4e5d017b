"""Abstract base class for all vendor catalogs."""

import logging
import os
from abc import ABC, abstractmethod
from concurrent.futures import FIRST_COMPLETED, ThreadPoolExecutor, wait
from typing import Callable, Dict, Iterable, Iterator, List, Optional, Tuple

from ..cache import read_json, write_json_atomic
from ..config import AppConfig, VendorConfig
from ..downloader import Downloader
from ..errors import AccessDeniedError, ConfigurationError, HarvestError, HttpStatusError
from ..fetcher import Fetcher
from ..merger import Record, RecordStore, merge_mappings
from ..models import BatchSummary, DownloadTask
from ..progress import NullProgress, ProgressReporter, SafeProgress

logger = logging.getLogger("catalog_harvester")


def safe_name(name: str) -> str:
    """Turn a key or document title into a single path component."""
    return name.strip().replace("/", "_").replace("\\", "_")


class BaseVendor(ABC):
    name: str = ""
    home_url: str = ""
    key_field: str = "o1"
    default_max_in_flight: int = 3

    def __init__(self, config: AppConfig, fetcher: Fetcher, downloader: Downloader,
                 progress: Optional[ProgressReporter] = None):
        self.config = config
        self.fetcher = fetcher
        self.downloader = downloader
        self.progress = SafeProgress(progress or NullProgress())
        self.vendor_config: VendorConfig = config.vendor(self.name)

    # --- collector hooks ---------------------------------------------------

    @abstractmethod
    def collect_links(self) -> List[str]:
        """Return the top-level category pages linked from the home page."""
        ...

    @abstractmethod
    def collect_categories(self, links: List[str]) -> Dict[str, str]:
        """Resolve category pages into a label -> identifier index."""
        ...

    @abstractmethod
    def fetch_category(self, label: str, category_id: str) -> List[Record]:
        ...

    @abstractmethod
    def datasheet_task(self, key: str, record: Record) -> Optional[DownloadTask]:
        ...

    @abstractmethod
    def collect_techdocs(self, key: str, record: Record) -> Dict[str, str]:
        ...

    @abstractmethod
    def techdoc_tasks(self, techdocs: Dict[str, str]) -> List[DownloadTask]:
        ...

    def build_indexes(self, categories: Dict[str, str]):
        """Vendor-specific side indexes written next to the dataset."""

    # --- paths -------------------------------------------------------------

    def json_path(self, filename: str) -> str:
        return os.path.join(self.config.data_dir, "json", self.name, filename)

    @property
    def max_in_flight(self) -> int:
        return self.vendor_config.max_in_flight or self.default_max_in_flight

    # --- phases ------------------------------------------------------------

    def build_database(self) -> RecordStore:
        """Walk the category tree and persist the merged record snapshot."""
        links = self.collect_links()
        if not links:
            raise ConfigurationError(
                f"[{self.name}] no category links on {self.home_url}, did the layout change?"
            )
        logger.info(f"[{self.name}] {len(links)} top-level category pages")

        categories = self.collect_categories(links)
        if not categories:
            raise ConfigurationError(f"[{self.name}] no category identifiers found")
        logger.info(f"[{self.name}] {len(categories)} categories")

        self.build_indexes(categories)

        store = RecordStore(self.key_field)
        skipped = 0
        for (label, category_id), result in self.gather(
            list(categories.items()),
            lambda item: self.fetch_category(*item),
            "Fetching results...",
        ):
            if isinstance(result, Exception):
                skipped += 1
                logger.warning(f"[{self.name}] Skipping category {label} ({category_id}): {result}")
                continue
            try:
                store.merge_batch(result)
            except HarvestError as e:
                skipped += 1
                logger.warning(f"[{self.name}] Skipping category {label} ({category_id}): {e}")

        store.save(self.json_path("data.json"))
        logger.info(
            f"[{self.name}] Database: {len(store)} records from "
            f"{len(categories) - skipped} categories ({skipped} skipped)"
        )
        return store

    def load_store(self) -> RecordStore:
        return RecordStore.load(self.json_path("data.json"), self.key_field)

    def build_techdocs(self) -> Dict[str, str]:
        store = self.load_store()
        techdocs: Dict[str, str] = {}
        failed = 0

        for (key, _), result in self.gather(
            list(store.items()),
            lambda item: self.collect_techdocs(*item),
            "Fetching part pages...",
        ):
            if isinstance(result, Exception):
                failed += 1
                logger.warning(f"[{self.name}] Part page for {key} failed: {result}")
                continue
            merge_mappings(techdocs, result)

        write_json_atomic(self.json_path("techdocs.json"), techdocs)
        logger.info(f"[{self.name}] Techdocs: {len(techdocs)} documents ({failed} part pages failed)")
        return techdocs

    def download_datasheets(self) -> BatchSummary:
        store = self.load_store()
        tasks = []
        for key, record in store.items():
            task = self.datasheet_task(key, record)
            if task is not None:
                tasks.append(task)
        return self.downloader.run_batch(tasks, self.max_in_flight,
                                         "Fetching datasheets...", self.progress)

    def download_techdocs(self) -> BatchSummary:
        path = self.json_path("techdocs.json")
        techdocs = read_json(path)
        if not isinstance(techdocs, dict):
            raise ConfigurationError(f"{path}: expected a JSON object")
        return self.downloader.run_batch(self.techdoc_tasks(techdocs), self.max_in_flight,
                                         "Fetching techdocs...", self.progress)

    # --- helpers -----------------------------------------------------------

    def gather(self, items: List, fn: Callable, label: str) -> Iterator[Tuple[object, object]]:
        """Run ``fn`` over ``items`` with ``build.workers`` threads.

        Yields ``(item, result)`` on the calling thread as results arrive, so
        the caller is the only one mutating whatever it accumulates into. A
        per-item ``HarvestError`` or ``OSError`` (a side file that could not
        be written) is yielded as the result instead of raised;
        a 403 stops admission and raises ``AccessDeniedError`` once the
        running calls have drained.
        """
        workers = self.config.build.workers
        remaining = iter(items)
        exhausted = False
        denied: Optional[str] = None
        in_flight = {}

        self.progress.start(len(items), label)
        try:
            with ThreadPoolExecutor(max_workers=workers, thread_name_prefix=self.name) as pool:
                while True:
                    while denied is None and not exhausted and len(in_flight) < workers:
                        item = next(remaining, _END)
                        if item is _END:
                            exhausted = True
                            break
                        in_flight[pool.submit(fn, item)] = item

                    if not in_flight:
                        break

                    done, _ = wait(list(in_flight), return_when=FIRST_COMPLETED)
                    for future in done:
                        item = in_flight.pop(future)
                        try:
                            result = future.result()
                        except HttpStatusError as e:
                            if e.status_code == 403:
                                denied = denied or e.url
                            result = e
                        except (HarvestError, OSError) as e:
                            result = e
                        else:
                            self.progress.increment()
                        yield item, result
        finally:
            self.progress.finish()

        if denied is not None:
            raise AccessDeniedError(denied)

    def gather_links(self, links: Iterable[str], fn: Callable, label: str) -> set:
        """Union of the link sets returned by ``fn`` for every page in ``links``."""
        found = set()
        for link, result in self.gather(list(links), fn, label):
            if isinstance(result, Exception):
                logger.warning(f"[{self.name}] {link}: {result}")
                continue
            found.update(result)
        return found


_END = object()
