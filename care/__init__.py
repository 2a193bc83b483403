"""Clinic application.

This package contains the models, services, serializers, views and
route registrations of the clinic backend: accounts and their role
entities, appointment scheduling and medical records.
"""
