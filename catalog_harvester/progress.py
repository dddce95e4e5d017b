"""Progress reporting. The pipeline only calls start/increment/finish."""

import logging
from typing import Optional

from tqdm import tqdm

logger = logging.getLogger("catalog_harvester")


class ProgressReporter:
    def start(self, total: int, label: str):
        pass

    def increment(self):
        pass

    def finish(self):
        pass


class NullProgress(ProgressReporter):
    pass


class TqdmProgress(ProgressReporter):
    def __init__(self, leave: bool = False):
        self.leave = leave
        self._bar: Optional[tqdm] = None

    def start(self, total: int, label: str):
        self.finish()
        self._bar = tqdm(total=total, desc=label, leave=self.leave, unit="item")

    def increment(self):
        if self._bar is not None:
            self._bar.update(1)

    def finish(self):
        if self._bar is not None:
            self._bar.close()
            self._bar = None


class SafeProgress(ProgressReporter):
    """Wraps a reporter so that its failures never reach the pipeline."""

    def __init__(self, inner: ProgressReporter):
        self.inner = inner

    def _call(self, name: str, *args):
        try:
            getattr(self.inner, name)(*args)
        except Exception as e:
            logger.debug(f"Progress reporter {name}() failed: {e}")

    def start(self, total: int, label: str):
        self._call("start", total, label)

    def increment(self):
        self._call("increment")

    def finish(self):
        self._call("finish")
