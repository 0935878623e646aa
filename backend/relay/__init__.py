"""Room Relay: real-time message relay with recent-history sync."""
