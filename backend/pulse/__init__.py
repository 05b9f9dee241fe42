"""Pulse Analytics: Discord gateway collector."""
