"""Appliance service CRM: customers, service reminders, AMC contracts and revenue."""

__version__ = "1.0.0"
