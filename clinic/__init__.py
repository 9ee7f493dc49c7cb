"""
Clinic Management API

A FastAPI-based backend for a clinic: staff accounts with role-based
permissions, patient records, conflict-free appointment scheduling, and
public consultation and contact requests.
"""

__version__ = "1.0.0"
