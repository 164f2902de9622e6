"""
Accounts Domain

Registration, login, the signed session cookie, onboarding, tenant bootstrap
and the demo seed. ``auth.py`` at the package root holds the dependencies the
other domains use to resolve the current user.
"""
