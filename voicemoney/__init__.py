"""
VoiceMoney - Source Package

A voice-first household account book. The user speaks a short memo about a
purchase, Gemini turns it into a structured transaction, and the ledger is
kept locally.

DESIGN PRINCIPLES:
1. Voice in, structured record out
2. Fail early, fail visibly
3. The AI is trusted for content, never for ranges
4. Every step must be auditable
5. Storage layer is swappable
"""

__version__ = "1.0.0"
__author__ = "VoiceMoney Team"
