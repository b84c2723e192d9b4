import argparse
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional, Sequence

from dotenv import load_dotenv

from .errors import ConfigurationError
from .normalizer import SchemaPolicy
from .records import COLUMN_KINDS, ValueKind

DEFAULT_ENV_NAME = ".env"
DEFAULT_BASE_NAME = "hostfacts"


@dataclass
class Config:
    # Hosts
    hosts: List[str] = field(default_factory=list)

    # Auth
    username: str = ""
    password: str = ""

    # WinRM settings
    winrm_port: int = 5985
    winrm_transport: str = "ntlm"
    winrm_scheme: str = "http"
    verify_ssl: bool = True
    read_timeout: int = 60

    # Execution
    max_concurrency: int = 1
    host_timeout_sec: Optional[float] = 120

    # Table
    schema: SchemaPolicy = SchemaPolicy.FIRST_RECORD
    default_kind: ValueKind = ValueKind.STRING
    host_field: Optional[str] = "Host"

    # Output
    out_dir: Path = Path(".")
    output_base_name: str = DEFAULT_BASE_NAME
    export_html: bool = False
    export_csv: bool = False
    export_list: bool = False
    export_xlsx: bool = False
    report_json: bool = False
    emit_records: bool = False
    emit_table: bool = False
    script_path: Optional[Path] = None

    # Mode
    debug: bool = False

    @property
    def output_base(self) -> Path:
        return Path(self.out_dir) / self.output_base_name

    @property
    def report_path(self) -> Path:
        return Path(self.out_dir) / f"{self.output_base_name}_report.json"

    def validate(self) -> "Config":
        if not isinstance(self.max_concurrency, int) or self.max_concurrency < 1:
            raise ConfigurationError(f"concurrency must be >= 1 (got {self.max_concurrency})")
        if self.host_timeout_sec is not None and self.host_timeout_sec < 0:
            raise ConfigurationError("host timeout cannot be negative")
        if not self.output_base_name or Path(self.output_base_name).name != self.output_base_name:
            raise ConfigurationError(f"invalid output base name: {self.output_base_name!r}")
        if self.default_kind not in COLUMN_KINDS:
            raise ConfigurationError(f"default column kind {self.default_kind.value} is not a column kind")
        if self.winrm_scheme not in ("http", "https"):
            raise ConfigurationError(f"unsupported WinRM scheme: {self.winrm_scheme}")
        if self.script_path and not Path(self.script_path).is_file():
            raise ConfigurationError(f"script not found: {self.script_path}")
        return self


def _read_hosts_file(path: str) -> List[str]:
    with open(path, "r", encoding="utf-8") as f:
        return [line.strip() for line in f if line.strip() and not line.lstrip().startswith("#")]


def parse_hosts(hosts_arg: Optional[str], hosts_file: Optional[str]) -> List[str]:
    hosts: List[str] = []
    if hosts_file:
        if not os.path.isfile(hosts_file):
            raise ConfigurationError(f"hosts file not found: {hosts_file}")
        hosts.extend(_read_hosts_file(hosts_file))
    if hosts_arg:
        if os.path.isfile(hosts_arg):
            hosts.extend(_read_hosts_file(hosts_arg))
        else:
            hosts.extend([h.strip() for h in hosts_arg.split(",") if h.strip()])

    if not hosts and os.getenv("HOSTFACTS_HOSTS"):
        hosts = [h.strip() for h in os.getenv("HOSTFACTS_HOSTS").split(",") if h.strip()]

    return list(dict.fromkeys(hosts))


def build_parser() -> argparse.ArgumentParser:
    kind_choices = sorted(k.value for k in COLUMN_KINDS)
    parser = argparse.ArgumentParser(description="Collect host configuration facts and export them as HTML/CSV/TXT")

    # Target args
    parser.add_argument("--hosts", help="Comma-separated list of hosts (or path to file)")
    parser.add_argument("--hosts-file", help="Path to file with hosts (one per line)")

    # Auth args
    parser.add_argument("--username", help="WinRM Username")
    parser.add_argument("--password", help="WinRM Password")

    # WinRM config
    parser.add_argument("--winrm-port", type=int, default=5985, help="WinRM Port (default 5985)")
    parser.add_argument("--winrm-transport", default="ntlm", choices=["ntlm", "kerberos", "basic", "credssp"], help="WinRM Transport")
    parser.add_argument("--winrm-scheme", default="http", choices=["http", "https"], help="WinRM Scheme")
    parser.add_argument("--insecure", action="store_true", help="Ignore SSL cert validation")
    parser.add_argument("--read-timeout", type=int, default=60, help="Read timeout (sec) for remote operations")

    # Execution
    parser.add_argument("--concurrency", type=int, default=1, help="Max parallel hosts (default 1, sequential)")
    parser.add_argument("--host-timeout", type=float, default=120, help="Timeout (sec) per host, 0 disables")

    # Table
    parser.add_argument("--schema", default=SchemaPolicy.FIRST_RECORD.value, choices=[p.value for p in SchemaPolicy],
                        help="Column discovery: first record (default) or union of all records")
    parser.add_argument("--default-kind", default=ValueKind.STRING.value, choices=kind_choices,
                        help="Column kind used when the first value is not a scalar")
    parser.add_argument("--host-field", default="Host", help="Field added to each record with its source host ('' disables)")

    # Output
    parser.add_argument("--out-dir", default=".", help="Output directory")
    parser.add_argument("--output-base-name", default=DEFAULT_BASE_NAME, help="Base name of the exported files")
    parser.add_argument("--html", action="store_true", help="Write <base>.html")
    parser.add_argument("--csv", action="store_true", help="Write <base>.csv")
    parser.add_argument("--list", action="store_true", help="Append to <base>.txt")
    parser.add_argument("--xlsx", action="store_true", help="Write <base>.xlsx")
    parser.add_argument("--report-json", action="store_true", help="Write <base>_report.json")
    parser.add_argument("--emit-records", action="store_true", help="Print collected records as JSON")
    parser.add_argument("--emit-table", action="store_true", help="Print the built table as JSON")
    parser.add_argument("--script", help="PowerShell script to run instead of the built-in one")

    # Flags
    parser.add_argument("--debug", action="store_true", help="Enable debug logging")
    parser.add_argument("--env-file", help="Path to .env file")
    return parser


def load_config(argv: Optional[Sequence[str]] = None) -> Config:
    args = build_parser().parse_args(argv)

    # Load Env
    env_path = Path(args.env_file) if args.env_file else Path.cwd() / DEFAULT_ENV_NAME
    if env_path.exists():
        load_dotenv(env_path)

    username = args.username or os.getenv("HOSTFACTS_USER")
    password = args.password or os.getenv("HOSTFACTS_PASSWORD")

    config = Config(
        hosts=parse_hosts(args.hosts, args.hosts_file),
        username=username or "",
        password=password or "",
        winrm_port=args.winrm_port,
        winrm_transport=args.winrm_transport,
        winrm_scheme=args.winrm_scheme,
        verify_ssl=not args.insecure,
        read_timeout=args.read_timeout,
        max_concurrency=args.concurrency,
        host_timeout_sec=args.host_timeout or None,
        schema=SchemaPolicy(args.schema),
        default_kind=ValueKind(args.default_kind),
        host_field=args.host_field or None,
        out_dir=Path(args.out_dir),
        output_base_name=args.output_base_name,
        export_html=args.html,
        export_csv=args.csv,
        export_list=args.list,
        export_xlsx=args.xlsx,
        report_json=args.report_json,
        emit_records=args.emit_records,
        emit_table=args.emit_table,
        script_path=Path(args.script) if args.script else None,
        debug=args.debug,
    )
    return config.validate()
