"""Core application for the care home backend.

This package contains the models, services, serializers, views and route
registrations behind the care home API.
"""
