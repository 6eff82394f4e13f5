"""
Stock Alerts - digest delivery for multi-tenant inventory alerts.

Collects pending stock alerts per tenant and user, renders one digest
e-mail per user and marks alerts as sent once the mail provider accepts
the message.
"""

__version__ = "1.0.0"
