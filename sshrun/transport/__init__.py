"""Transports that run commands on remote targets."""
