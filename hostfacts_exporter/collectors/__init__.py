from .base import RecordProducer, records_from_json
from .network_config import NetworkConfigCollector

__all__ = ["NetworkConfigCollector", "RecordProducer", "records_from_json"]
