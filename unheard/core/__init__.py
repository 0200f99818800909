"""
core — Shared constants, error taxonomy, configuration, structured logging
and the per-dispatch state machine.
"""
