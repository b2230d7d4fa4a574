"""Stub of the admin panel backend's auth and sites endpoints.

Development and test double only: users, sites and refresh-token state live
in memory and vanish with the process.
"""
