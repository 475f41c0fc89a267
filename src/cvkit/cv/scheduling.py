"""Fold executors: run one task per fold sequentially or on a thread pool."""

from __future__ import annotations

from concurrent.futures import FIRST_EXCEPTION, ThreadPoolExecutor, wait
from typing import Callable, Dict, List, Optional, Sequence, TypeVar

from cvkit.core.config import FaultPolicy
from cvkit.core.exceptions import FoldExecutionError
from cvkit.core.interfaces import IFoldExecutor
from cvkit.core.utils import LoggerFactory

T = TypeVar("T")


class _BaseFoldExecutor(IFoldExecutor):
    """Shared fault reporting for fold executors."""

    def __init__(self, fault_policy: FaultPolicy = FaultPolicy.FAIL_FAST):
        self.fault_policy = FaultPolicy(fault_policy)
        self.logger = LoggerFactory.get_logger(__name__)

    def _raise_faults(self, faults: Dict[int, BaseException]) -> None:
        ordered: List[FoldExecutionError] = []
        for fold, exc in faults.items():
            if not isinstance(exc, FoldExecutionError):
                wrapped = FoldExecutionError(fold, "run", str(exc))
                wrapped.__cause__ = exc
                exc = wrapped
            ordered.append(exc)
        ordered.sort(key=lambda e: e.fold)
        for exc in ordered:
            self.logger.error(str(exc))
        first = ordered[0]
        first.faults = ordered
        raise first


class SequentialFoldExecutor(_BaseFoldExecutor):
    """Runs folds one after another on the calling thread."""

    def run(self, tasks: Sequence[Callable[[], T]]) -> List[T]:
        results: List[T] = []
        faults: Dict[int, BaseException] = {}
        for fold, task in enumerate(tasks):
            try:
                results.append(task())
            except Exception as e:
                faults[fold] = e
                if self.fault_policy is FaultPolicy.FAIL_FAST:
                    break
        if faults:
            self._raise_faults(faults)
        return results


class ThreadPoolFoldExecutor(_BaseFoldExecutor):
    """Runs folds concurrently on worker threads.

    Results come back in fold order whatever the completion order. Under
    FAIL_FAST the first fault cancels folds that have not started; folds
    already running are allowed to finish and their faults are reported too.
    """

    def __init__(self, max_workers: Optional[int] = None,
                 fault_policy: FaultPolicy = FaultPolicy.FAIL_FAST):
        super().__init__(fault_policy)
        self.max_workers = max_workers

    def run(self, tasks: Sequence[Callable[[], T]]) -> List[T]:
        tasks = list(tasks)
        if not tasks:
            return []
        results: List[Optional[T]] = [None] * len(tasks)
        faults: Dict[int, BaseException] = {}
        workers = self.max_workers or len(tasks)

        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="fold") as pool:
            futures = {pool.submit(task): fold for fold, task in enumerate(tasks)}
            pending = set(futures)
            while pending:
                done, pending = wait(pending, return_when=FIRST_EXCEPTION)
                for future in done:
                    if future.cancelled():
                        continue
                    fold = futures[future]
                    exc = future.exception()
                    if exc is None:
                        results[fold] = future.result()
                    else:
                        faults[fold] = exc
                if faults and self.fault_policy is FaultPolicy.FAIL_FAST:
                    for future in pending:
                        future.cancel()

        if faults:
            self._raise_faults(faults)
        return results  # type: ignore[return-value]


def create_executor(use_threads: bool, max_workers: Optional[int] = None,
                    fault_policy: FaultPolicy = FaultPolicy.FAIL_FAST) -> IFoldExecutor:
    """Executor matching the ``use_threads`` option."""
    if use_threads:
        return ThreadPoolFoldExecutor(max_workers=max_workers, fault_policy=fault_policy)
    return SequentialFoldExecutor(fault_policy=fault_policy)
