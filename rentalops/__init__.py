"""Rental Ops - Job Composition & Allocation Engine

Booking core for an event/equipment-rental operations ERP: jobs, billable
line items, crew assignments and the dashboard aggregates built on them.
"""

__version__ = "0.1.0"
