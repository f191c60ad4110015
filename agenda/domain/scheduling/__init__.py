"""
Scheduling domain - availability and booking.

Availability for a professional and a date is computed in four stages:
calendar.py (weekly working window), overlay.py (one-off blocks and days off),
slots.py (candidate start times) and conflicts.py (existing appointments);
engine.py composes them. The read path (AvailabilityService) is advisory.
The commit path (BookingService) re-runs the same rules under a
per-professional lock in the transaction that writes the appointment.

Endpoints:
- router.py: authenticated dashboard (availability, appointments, calendars)
- public_router.py: public booking page resolved by business slug
"""
