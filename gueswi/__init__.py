"""Gueswi console backend: telephony, softphone, CRM pipeline and bookings for tenants"""
