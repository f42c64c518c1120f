"""Prometheus metrics for FlowChat.

Tracks submissions, streaming activity, persistence and attachment policy.
"""

from prometheus_client import Counter, Histogram

# Submission metrics
SUBMISSIONS = Counter(
    "flowchat_submissions_total",
    "Total number of chat submissions",
    labelnames=["chatflow_id", "transport", "outcome"],
)

SUBMISSION_LATENCY = Histogram(
    "flowchat_submission_latency_seconds",
    "Time from submission to applied reply",
    labelnames=["chatflow_id", "transport"],
    buckets=(0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0, 60.0),
)

# Streaming metrics
STREAM_TURNS = Counter(
    "flowchat_stream_turns_total",
    "Number of streamed assistant turns started",
    labelnames=["chatflow_id"],
)

STREAM_TOKENS = Counter(
    "flowchat_stream_tokens_total",
    "Number of token events applied to the log",
    labelnames=["chatflow_id"],
)

# Persistence metrics
HISTORY_WRITES = Counter(
    "flowchat_history_writes_total",
    "Persisted history writes",
    labelnames=["backend"],
)

HISTORY_DISCARDS = Counter(
    "flowchat_history_discards_total",
    "Persisted records discarded on load",
    labelnames=["backend", "reason"],
)

HISTORY_ERRORS = Counter(
    "flowchat_history_errors_total",
    "History store operations that failed and were skipped",
    labelnames=["backend", "operation"],
)

# Attachment metrics
ATTACHMENTS_REJECTED = Counter(
    "flowchat_attachments_rejected_total",
    "Attachments refused by the upload policy",
    labelnames=["mime"],
)
