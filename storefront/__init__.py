"""
Storefront order & payment pipeline.

Turns a cart of priced lines into an order, runs the payment attempt against
a simulated processor and keeps the order/invoice status lifecycle consistent
with what is notified and billed.
"""

__version__ = "0.1.0"
