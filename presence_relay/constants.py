"""
Application-level constants for hardcoded protocol behavior.

These values are part of the wire protocol or safety limits and should
NEVER be changed via environment variables. For configurable values
(timeouts, default activity label, database pool), see
presence_relay/settings.py.
"""

# ============================================================================
# WebSocket Protocol Constants
# ============================================================================

# Close code sent to a connection that was replaced by a newer registration
# of the same user (RFC 6455 policy violation)
WS_POLICY_VIOLATION_CODE = 1008

# Timeout (seconds) when closing WebSocket connections
# Keeps a dead peer from stalling the presence lock
WS_CLOSE_TIMEOUT_SECONDS = 5

# Reason attached to the close frame of an evicted connection
WS_SUPERSEDED_REASON = "Superseded by a newer connection"


# ============================================================================
# Identity / payload limits
# ============================================================================

# Upper bound for user identifiers and activity labels
MAX_USER_ID_LENGTH = 128
MAX_ACTIVITY_LENGTH = 128

# Length of the correlation id derived from a connection id
CORRELATION_ID_LENGTH = 8


# ============================================================================
# Logging
# ============================================================================

# Maximum size of a single JSON log line
MAX_LOG_SIZE_BYTES = 64 * 1024
