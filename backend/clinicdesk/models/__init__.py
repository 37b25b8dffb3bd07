"""Aggregate model imports so every table registers on Base.metadata."""

from clinicdesk.models.user import User, UserRole
from clinicdesk.models.clinic import Clinic
from clinicdesk.models.client import Client
from clinicdesk.models.product import Product
from clinicdesk.models.appointment import Appointment
from clinicdesk.models.order import Order, OrderLineItem
from clinicdesk.models.payment import Payment
from clinicdesk.models.activity_log import ActivityLog
from clinicdesk.models.notification import Notification

__all__ = [
    "User", "UserRole",
    "Clinic", "Client", "Product", "Appointment",
    "Order", "OrderLineItem", "Payment",
    "ActivityLog", "Notification",
]
