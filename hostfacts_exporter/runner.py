import json
import logging
import time
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, List, Optional

from .collectors import NetworkConfigCollector
from .config import Config
from .errors import ConfigurationError, ExportWriteError
from .executor import ExecutionReport, ProgressHook, QueryExecutor, RecordProducer
from .normalizer import Table, TableBuilder
from .records import Record
from .writers import CsvWriter, HtmlTableWriter, ListWriter, XlsxWriter, target_path

logger = logging.getLogger("hostfacts.runner")

HostSource = Callable[[], Iterable[str]]


@dataclass
class RunOutcome:
    execution: ExecutionReport
    records: Optional[List[Record]] = None
    table: Optional[Table] = None
    exports: Dict[str, Path] = field(default_factory=dict)
    export_errors: Dict[str, ExportWriteError] = field(default_factory=dict)

    @property
    def all_failed(self) -> bool:
        return bool(self.execution.results) and not self.execution.successes


class Runner:
    def __init__(
        self,
        config: Config,
        producer: Optional[RecordProducer] = None,
        host_source: Optional[HostSource] = None,
        on_host_started: Optional[ProgressHook] = None,
    ):
        self.config = config
        self.producer = producer
        self.host_source = host_source
        self.on_host_started = on_host_started
        self.run_id = f"{datetime.now(timezone.utc).strftime('%Y%m%d_%H%M%S')}_{uuid.uuid4().hex[:6]}"
        self.report: Dict[str, Any] = {
            "run_id": self.run_id,
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "config": {
                "user": self.config.username,
                "concurrency": self.config.max_concurrency,
                "host_timeout_sec": self.config.host_timeout_sec,
                "schema": self.config.schema.value,
                "default_kind": self.config.default_kind.value,
                "output_base": str(self.config.output_base),
            },
            "hosts": {},
            "table": {},
            "exports": {},
            "summary": {},
        }

    def resolve_hosts(self) -> List[str]:
        hosts = list(self.config.hosts or [])
        if not hosts and self.host_source is not None:
            logger.info("No hosts given; asking the host source")
            hosts = [h.strip() for h in self.host_source() if h and h.strip()]
        hosts = list(dict.fromkeys(hosts))
        if not hosts:
            raise ConfigurationError("no hosts to query and no host source available")
        return hosts

    def _default_producer(self) -> RecordProducer:
        return NetworkConfigCollector(self.config)

    def _export(self, outcome: RunOutcome, fmt: str, write: Callable[[Path], Any]):
        path = target_path(self.config.output_base, fmt)
        try:
            write(path)
        except Exception as e:
            err = ExportWriteError(fmt, path, e)
            logger.error(f"Failed to write {fmt.upper()}: {e}")
            outcome.export_errors[fmt] = err
            self.report["exports"][fmt] = {"path": str(path), "error": str(e)}
            return
        outcome.exports[fmt] = path
        self.report["exports"][fmt] = {"path": str(path)}

    def write_exports(self, outcome: RunOutcome, records: List[Record], table: Optional[Table]):
        cfg = self.config
        if cfg.export_html:
            self._export(outcome, "html", lambda p: HtmlTableWriter().write(table, p))
        if cfg.export_csv:
            self._export(outcome, "csv", lambda p: CsvWriter().write(records, p))
        if cfg.export_list:
            self._export(outcome, "list", lambda p: ListWriter().write(table, p))
        if cfg.export_xlsx:
            self._export(outcome, "xlsx", lambda p: XlsxWriter().write(table, p, outcome.execution.failures))

    def save_report(self):
        path = self.config.report_path
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            with open(path, "w", encoding="utf-8") as f:
                json.dump(self.report, f, indent=2)
            logger.info(f"Report saved to {path}")
        except Exception as e:
            logger.error(f"Failed to save report: {e}")

    def execute(self) -> RunOutcome:
        start_time = time.time()
        cfg = self.config.validate()
        hosts = self.resolve_hosts()
        producer = self.producer or self._default_producer()

        executor = QueryExecutor(
            concurrency_limit=cfg.max_concurrency,
            host_timeout=cfg.host_timeout_sec,
            host_field=cfg.host_field,
            on_host_started=self.on_host_started,
        )
        execution = executor.run(hosts, producer)
        outcome = RunOutcome(execution=execution)
        self.report["hosts"] = {r.host: r.to_dict() for r in execution.results}

        records = execution.records()
        needs_table = cfg.emit_table or cfg.export_html or cfg.export_list or cfg.export_xlsx
        table = None
        if needs_table:
            table = TableBuilder(default_kind=cfg.default_kind, schema=cfg.schema).build(records)
            self.report["table"] = {
                "columns": [{"name": c.name, "kind": c.kind.value} for c in table.columns],
                "rows": len(table.rows),
                "skipped": [e.to_dict() for e in table.skipped],
            }

        self.write_exports(outcome, records, table)

        if cfg.emit_records:
            outcome.records = records
        if cfg.emit_table:
            outcome.table = table

        self.report["summary"] = {
            **execution.summary(),
            "exports_written": sorted(outcome.exports),
            "exports_failed": sorted(outcome.export_errors),
            "duration_sec": round(time.time() - start_time, 2),
        }
        if cfg.report_json:
            self.save_report()
        return outcome

    def print_summary(self, outcome: RunOutcome):
        summary = self.report["summary"]
        print("\n=== Host Facts Run Summary ===")
        print(f"Run ID: {self.run_id}")
        print(f"Hosts Targeted: {summary.get('hosts_targeted', 0)}")
        print(f"Hosts Succeeded: {summary.get('hosts_succeeded', 0)}")
        print(f"Hosts Failed: {len(summary.get('hosts_failed', []))}")
        for failure in outcome.execution.failures:
            print(f"  {failure.host:<20} {failure.category:<18} {failure.error[:80]}")
        print(f"Records: {summary.get('records', 0)}")
        for fmt, path in outcome.exports.items():
            print(f"{fmt.upper()}: {path}")
        for fmt, err in outcome.export_errors.items():
            print(f"{fmt.upper()}: FAILED ({err.cause})")
        if self.config.report_json:
            print(f"Report: {self.config.report_path}")
        print(f"Duration: {summary.get('duration_sec', 0)}s")
        print("==============================\n")
