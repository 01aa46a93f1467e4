"""Listener spike alerts for Broadcastify feeds."""
