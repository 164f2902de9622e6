"""Operating-hours and slot arithmetic used by the booking domain"""
