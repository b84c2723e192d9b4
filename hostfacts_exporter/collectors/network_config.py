import json
import logging
from pathlib import Path
from typing import List, Optional

from ..errors import HostUnreachableError, ProducerError, categorize_error
from ..records import Record
from ..winrm_client import WinRMClient
from .base import records_from_json

logger = logging.getLogger("hostfacts.collectors.network_config")

NETWORK_CONFIG_SCRIPT = r"""
$ErrorActionPreference = 'Stop'
Get-CimInstance Win32_NetworkAdapterConfiguration -Filter "IPEnabled = True" |
  Select-Object Description, Index, MACAddress, DHCPEnabled, DHCPServer, DHCPLeaseObtained,
    IPAddress, IPSubnet, DefaultIPGateway, DNSDomain, DNSServerSearchOrder,
    WINSPrimaryServer, TcpipNetbiosOptions |
  ConvertTo-Json -Depth 3 -Compress
""".strip()


class NetworkConfigCollector:
    """Record producer returning the IP-enabled adapter configurations of a Windows host over WinRM."""

    name = "network_config"

    def __init__(self, config, script_path: Optional[Path] = None, client_factory=WinRMClient):
        self.config = config
        self.client_factory = client_factory
        path = script_path or getattr(config, "script_path", None)
        if path:
            with open(path, "r", encoding="utf-8") as f:
                self.script_content = f.read()
        else:
            self.script_content = NETWORK_CONFIG_SCRIPT

    def __call__(self, host: str) -> List[Record]:
        client = self.client_factory(host, self.config)
        res = client.run_command(self.script_content)

        if res.error:
            info = categorize_error(res.error)
            if res.unreachable:
                raise HostUnreachableError(res.error, category=info["error_category"], host=host)
            raise ProducerError(res.error, category=info["error_category"], host=host)

        if res.exit_code != 0 and not res.stdout.strip():
            raise ProducerError(
                res.stderr.strip()[:2000] or f"exit code {res.exit_code}",
                category="NON_ZERO_EXIT",
                host=host,
            )

        if not res.stdout.strip():
            logger.info(f"[{host}] no adapter configuration returned")
            return []

        try:
            payload = json.loads(res.stdout)
        except json.JSONDecodeError as e:
            raise ProducerError(f"JSON Parse Error: {e}", category="PARSE_ERROR", host=host) from e

        records = records_from_json(payload, host=host)
        logger.debug(f"[{host}] {len(records)} adapter record(s)")
        return records
