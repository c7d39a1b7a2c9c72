"""
Authorization decision engine.

Computes a user's effective permission set within one organization and
answers allow/deny queries, auditing every denial.
"""
