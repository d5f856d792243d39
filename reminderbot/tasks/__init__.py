"""Reconciliation loops that run beside the event worker."""
