"""
Audit ledger for MedRoute.

This package contains the hash-chained audit ledger, its typed detail payloads
and the redaction of personal identifiers.
"""

from medroute.core.audit.ledger import AuditLedger, compute_hash, entry_hash
from medroute.core.audit.redaction import REDACTED, redact
