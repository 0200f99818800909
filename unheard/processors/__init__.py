"""
processors — One type processor per input kind.

Every processor follows the validate → process → fallback contract defined
in :mod:`unheard.processors.base`.
"""
