"""
Booking Domain

Locations, staff, services, availability, appointments, waitlist and
notification templates, plus the unauthenticated public booking flow.
Wall-clock times are interpreted in the location timezone (see
``gueswi.booking.hours``).
"""
