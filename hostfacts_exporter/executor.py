import concurrent.futures
import logging
import threading
import time
import traceback
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Sequence, Union

from .errors import ConfigurationError, ProducerError, categorize_error
from .records import Record

logger = logging.getLogger("hostfacts.executor")

RecordProducer = Callable[[str], Iterable[Union[Record, Mapping[str, Any]]]]
ProgressHook = Callable[[str, int, int], None]


@dataclass
class HostSuccess:
    host: str
    records: List[Record] = field(default_factory=list)
    duration_ms: float = 0.0

    ok = True

    def to_dict(self) -> Dict[str, Any]:
        return {
            "host": self.host,
            "status": "success",
            "records": len(self.records),
            "duration_ms": self.duration_ms,
        }


@dataclass
class HostFailure:
    host: str
    error: str
    category: str = "UNKNOWN"
    duration_ms: float = 0.0
    exception_type: str = ""
    traceback_snip: str = ""

    ok = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "host": self.host,
            "status": "failure",
            "error_category": self.category,
            "error_detail": self.error[:200],
            "exception_type": self.exception_type,
            "duration_ms": self.duration_ms,
            "traceback_snip": self.traceback_snip,
        }


HostResult = Union[HostSuccess, HostFailure]


@dataclass
class ExecutionReport:
    """Outcome of one run: one result per requested host, in request order."""

    results: List[HostResult] = field(default_factory=list)
    concurrency_limit: int = 1
    duration_sec: float = 0.0

    @property
    def successes(self) -> List[HostSuccess]:
        return [r for r in self.results if r.ok]

    @property
    def failures(self) -> List[HostFailure]:
        return [r for r in self.results if not r.ok]

    @property
    def failed_hosts(self) -> List[str]:
        return [r.host for r in self.failures]

    def records(self) -> List[Record]:
        out: List[Record] = []
        for result in self.successes:
            out.extend(result.records)
        return out

    def summary(self) -> Dict[str, Any]:
        return {
            "hosts_targeted": len(self.results),
            "hosts_succeeded": len(self.successes),
            "hosts_failed": self.failed_hosts,
            "records": sum(len(r.records) for r in self.successes),
            "concurrency_limit": self.concurrency_limit,
            "duration_sec": self.duration_sec,
        }


def categorize_exception(exc: BaseException) -> str:
    if isinstance(exc, ProducerError):
        return exc.category
    if isinstance(exc, concurrent.futures.TimeoutError):
        return "TIMEOUT"
    return categorize_error(str(exc))["error_category"]


class QueryExecutor:
    """
    Runs a record producer against many hosts with bounded parallelism.

    Every host ends as exactly one HostSuccess or HostFailure; a failing or
    hanging host never stops the others. No retries.
    """

    def __init__(
        self,
        concurrency_limit: int = 1,
        host_timeout: Optional[float] = None,
        host_field: Optional[str] = None,
        on_host_started: Optional[ProgressHook] = None,
    ):
        if isinstance(concurrency_limit, bool) or not isinstance(concurrency_limit, int) or concurrency_limit < 1:
            raise ConfigurationError(f"concurrency limit must be an integer >= 1, got {concurrency_limit!r}")
        if host_timeout is not None and host_timeout <= 0:
            host_timeout = None
        self.concurrency_limit = concurrency_limit
        self.host_timeout = host_timeout
        self.host_field = host_field
        self.on_host_started = on_host_started

    def _call_producer(self, producer: RecordProducer, host: str) -> List[Record]:
        records = []
        for item in producer(host) or []:
            record = item if isinstance(item, Record) else Record.from_mapping(item)
            records.append(record.with_host(host, self.host_field))
        return records

    def _call_holding_slot(self, slots: threading.BoundedSemaphore, producer: RecordProducer, host: str) -> List[Record]:
        try:
            return self._call_producer(producer, host)
        finally:
            slots.release()

    def _call_with_timeout(self, slots: threading.BoundedSemaphore, producer: RecordProducer, host: str) -> List[Record]:
        # the slot is held until the producer call returns, even after a timeout
        slots.acquire()
        if self.host_timeout is None:
            return self._call_holding_slot(slots, producer, host)
        executor = concurrent.futures.ThreadPoolExecutor(max_workers=1, thread_name_prefix=f"producer-{host}")
        try:
            try:
                future = executor.submit(self._call_holding_slot, slots, producer, host)
            except Exception:
                slots.release()
                raise
            try:
                return future.result(timeout=self.host_timeout)
            except concurrent.futures.TimeoutError:
                if future.done():
                    raise
                raise ProducerError(f"host timeout after {self.host_timeout}s", category="TIMEOUT", host=host)
        finally:
            # a timed out call keeps running in the background and keeps its slot; its result is dropped
            executor.shutdown(wait=False)

    def _query_host(
        self, slots: threading.BoundedSemaphore, producer: RecordProducer, host: str, position: int, total: int
    ) -> HostResult:
        logger.info(f"[{host}] query started ({position}/{total})")
        if self.on_host_started:
            try:
                self.on_host_started(host, position, total)
            except Exception as exc:
                logger.warning(f"[{host}] progress hook failed: {exc}")

        start = time.perf_counter()
        try:
            records = self._call_with_timeout(slots, producer, host)
        except Exception as exc:
            duration_ms = round((time.perf_counter() - start) * 1000, 2)
            category = categorize_exception(exc)
            logger.warning(f"[{host}] query FAILED: {category} - {exc}")
            return HostFailure(
                host=host,
                error=str(exc),
                category=category,
                duration_ms=duration_ms,
                exception_type=exc.__class__.__name__,
                traceback_snip=traceback.format_exc()[-8000:],
            )

        duration_ms = round((time.perf_counter() - start) * 1000, 2)
        logger.info(f"[{host}] query OK: {len(records)} record(s) in {duration_ms}ms")
        return HostSuccess(host=host, records=records, duration_ms=duration_ms)

    def run(self, hosts: Sequence[str], producer: RecordProducer) -> ExecutionReport:
        hosts = list(hosts)
        total = len(hosts)
        start = time.time()
        logger.info(f"Querying {total} host(s) with concurrency {self.concurrency_limit}")

        results: List[HostResult] = []
        slots = threading.BoundedSemaphore(self.concurrency_limit)
        with concurrent.futures.ThreadPoolExecutor(max_workers=self.concurrency_limit) as executor:
            # submission order is the queue order
            futures = [
                executor.submit(self._query_host, slots, producer, host, i, total)
                for i, host in enumerate(hosts, start=1)
            ]
            for fut, host in zip(futures, hosts):
                try:
                    results.append(fut.result())
                except Exception as exc:
                    logger.error(f"[{host}] query EXCEPTION: {exc}")
                    results.append(HostFailure(
                        host=host,
                        error=str(exc),
                        category="UNKNOWN",
                        exception_type=exc.__class__.__name__,
                    ))

        report = ExecutionReport(
            results=results,
            concurrency_limit=self.concurrency_limit,
            duration_sec=round(time.time() - start, 2),
        )
        logger.info(
            f"Query finished: {len(report.successes)} ok, {len(report.failures)} failed "
            f"in {report.duration_sec}s"
        )
        return report


def run(
    hosts: Sequence[str],
    producer: RecordProducer,
    concurrency_limit: int = 1,
    host_timeout: Optional[float] = None,
    on_host_started: Optional[ProgressHook] = None,
) -> List[HostResult]:
    """Functional shortcut returning the plain list of host results."""
    executor = QueryExecutor(concurrency_limit, host_timeout=host_timeout, on_host_started=on_host_started)
    return executor.run(hosts, producer).results
