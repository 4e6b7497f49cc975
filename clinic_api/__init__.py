"""Clinic appointment booking API."""
