"""Service package. Business logic layer.

Services apply business rules, call repositories for persistence and raise
``app.utils.exceptions`` errors for the routers to surface.
"""
