"""Administrative audit trail.

Records one append-only ``AuditLog`` row per completed mutating request
made by a system administrator, and serves the audit-log viewer.
"""
