"""
Role registry and role-permission assignment.

Organization-scoped roles, default-role protection, deletion dependency
checks, and the additive / replace-set permission mutations.
"""
