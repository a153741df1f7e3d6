"""
Custom exception classes for the presence and relay subsystem.

Removing a connection that is not registered is not an error: the
registry returns None and nothing is broadcast.
"""


class StoreError(Exception):
    """
    Message persistence failed.

    Raised by a MessageStore when a message could not be saved, including
    when the store call exceeds its timeout. The relay aborts and only the
    sender is notified.
    """

    pass


class MalformedEvent(Exception):
    """
    Inbound WebSocket frame could not be parsed.

    Raised for non-JSON frames, unknown event names and payloads with
    missing or invalid fields. The frame is dropped and the connection
    stays open.
    """

    pass
