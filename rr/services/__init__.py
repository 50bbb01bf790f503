"""Reconciliation, submission tracking and rollout control."""
