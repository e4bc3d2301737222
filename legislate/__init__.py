"""Legislate legal-aid platform - Backend.

This package holds the verification and matching core:
- Organisations (NGOs, lawyers) self-register and wait for admin approval.
- Individuals register with a password and can request help from verified providers.
- Accepted requests become *connections*, visible to both parties.

Auth is JWT based; admin, NGO and lawyer accounts use TOTP as a second factor.
"""

__all__ = ["__version__"]

__version__ = "0.1.0"
