"""
Append-only audit trail of RBAC mutations and denied authorization decisions.
"""
