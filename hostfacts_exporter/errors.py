from typing import Dict, Optional


class HostFactsError(Exception):
    """Base class for exporter errors."""


class ConfigurationError(HostFactsError):
    """Invalid settings or no hosts to query. Fatal, raised before any network activity."""


class ProducerError(HostFactsError):
    """A record producer failed for one host."""

    def __init__(self, message: str, category: str = "PRODUCER_ERROR", host: Optional[str] = None):
        super().__init__(message)
        self.category = category
        self.host = host


class HostUnreachableError(ProducerError):
    def __init__(self, message: str = "unreachable", category: str = "UNREACHABLE", host: Optional[str] = None):
        super().__init__(message, category=category, host=host)


class RecordProcessingError(HostFactsError):
    """One record could not be turned into a table row."""

    def __init__(self, message: str, record_index: int, host: Optional[str] = None):
        super().__init__(message)
        self.record_index = record_index
        self.host = host

    def to_dict(self):
        return {"record_index": self.record_index, "host": self.host, "error": str(self)}


class ExportWriteError(HostFactsError):
    """A single export target could not be written."""

    def __init__(self, fmt: str, path, cause: Exception):
        super().__init__(f"{fmt} export to {path} failed: {cause}")
        self.fmt = fmt
        self.path = path
        self.cause = cause


def categorize_error(error_msg: str) -> Dict[str, str]:
    """Classify transport error text for diagnostics."""
    cat = "UNKNOWN"
    short = str(error_msg)[:200]
    lowered = str(error_msg).lower()

    if "401" in lowered or "credentials were rejected" in lowered or "access is denied" in lowered:
        cat = "AUTH_REJECTED"
    elif "timed out" in lowered or "timeout" in lowered:
        cat = "TIMEOUT"
    elif "connection refused" in lowered:
        cat = "CONNECTION_REFUSED"
    elif "certificate" in lowered or "ssl" in lowered:
        cat = "TLS_ERROR"
    elif "resolve" in lowered or "unknown host" in lowered or "name or service not known" in lowered:
        cat = "DNS_ERROR"
    elif "no route" in lowered or "unreachable" in lowered or "failed to establish" in lowered:
        cat = "UNREACHABLE"

    return {
        "error_category": cat,
        "error_detail": short
    }
