from reviewhooks.models.account import Account
from reviewhooks.models.integration import Integration, Location
from reviewhooks.models.processed_event import ProcessedEvent
from reviewhooks.models.transaction_log import TransactionLog

__all__ = ["Account", "Integration", "Location", "ProcessedEvent", "TransactionLog"]
