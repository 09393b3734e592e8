"""
Core — Constants

Audit action names and pagination limits shared across apps.

@file core/constants.py
"""

AUDIT_ACTION_CREATE = 'CREATE'
AUDIT_ACTION_UPDATE = 'UPDATE'
AUDIT_ACTION_SOFT_DELETE = 'SOFT_DELETE'
AUDIT_ACTION_STATUS_CHANGE = 'STATUS_CHANGE'
AUDIT_ACTION_ADJUSTMENT = 'ADJUSTMENT'

DEFAULT_PAGE_SIZE = 25
MAX_PAGE_SIZE = 200
