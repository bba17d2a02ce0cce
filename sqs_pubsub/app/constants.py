"""Defaults shared by settings and the SQS subscriber."""
from __future__ import annotations

# Number of messages requested per ReceiveMessage call (SQS allows 1..10).
DEFAULT_SQS_MAX_MESSAGES = 10
# Long-poll wait passed as WaitTimeSeconds (SQS allows 0..20).
DEFAULT_SQS_TIMEOUT_SECONDS = 2
# Pause after a receive that returned no messages.
DEFAULT_SQS_SLEEP_INTERVAL_SECONDS = 2.0
# Entries buffered before a DeleteMessageBatch call; 0 deletes every message on done().
DEFAULT_SQS_DELETE_BUFFER_SIZE = 0
DEFAULT_SQS_CONSUME_BASE64 = True

# Hard limit of DeleteMessageBatch entries per request.
SQS_DELETE_BATCH_LIMIT = 10
