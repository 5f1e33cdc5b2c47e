"""
Clinic Management System

A FastAPI-based system for running a medical clinic: patients, doctors,
appointments, invoices and medical records, with role-based abilities,
payment status tracking and audit logging.
"""

__version__ = "1.0.0"
