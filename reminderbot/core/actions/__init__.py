"""Pending actions and the notify flow state machine."""
