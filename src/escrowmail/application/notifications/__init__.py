"""
Notification messages, rendering and delivery.
"""
