"""
Test suite for the Clinic Management System.

Contains unit tests for the permission, payment and rate limiting rules and
API tests for the routes built on them.
"""
import os

# Set environment for testing
os.environ["TESTING"] = "1"
