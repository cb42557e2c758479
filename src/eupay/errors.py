"""
Failure conditions of a payment calculation.

Every error aborts the calculation before anything is written; the message
is surfaced verbatim to the caller.
"""


class PayrollError(Exception):
    """Base class for calculation failures."""


class NotFoundError(PayrollError):
    """A staff member, monthly entry, project or project period is missing."""


class NoRateDataError(PayrollError):
    """No exchange rates are stored for a requested date range."""


class DuplicatePaymentError(PayrollError):
    """A payment already exists for the staff/month and the policy rejects another."""
