"""
Permission catalog feature module.

Global, tenant-independent set of (feature_area, permission_type) pairs,
defined by a versioned seed list and seeded idempotently.
"""
