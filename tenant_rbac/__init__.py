"""
Multi-tenant role-based access control core.
"""
