"""
UNHEARD — Multimodal input routing core for AAC communication.

Typed text / spoken audio / tapped symbols / sign clips / photographed text
→ matching processor under a deadline → scored result, or a fallback answer.
"""

__version__ = "0.3.0"
__author__ = "UNHEARD Team"
