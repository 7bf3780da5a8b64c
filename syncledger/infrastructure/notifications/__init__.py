from syncledger.infrastructure.notifications.in_memory import RecordingSink
from syncledger.infrastructure.notifications.webhook import HttpWebhookSink

__all__ = ["HttpWebhookSink", "RecordingSink"]
