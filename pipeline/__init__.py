from .ingestion import Ingestor, SEARCH_QUERIES
from .dispatch import Dispatcher
from .reporting import Reporter, next_scheduled_time, schedule_labels

__all__ = [
    "Ingestor", "Dispatcher", "Reporter",
    "SEARCH_QUERIES", "next_scheduled_time", "schedule_labels"
]
