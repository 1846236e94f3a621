"""Provisioning workflow: ordered step sequence and progress notifications."""
