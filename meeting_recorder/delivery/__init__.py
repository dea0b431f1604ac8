"""
Delivery Module

Forwards finished recordings to the downstream consumer.
"""

from .webhook import DeliveryReceipt, WebhookDelivery

__all__ = ["DeliveryReceipt", "WebhookDelivery"]
