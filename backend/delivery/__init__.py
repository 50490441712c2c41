"""
Outbound email delivery for the RDC portal.
"""

from backend.delivery.channels import SendGridChannel
from backend.delivery.models import DeliveryState, DeliveryStatus, EmailContent

__all__ = ["DeliveryState", "DeliveryStatus", "EmailContent", "SendGridChannel"]
