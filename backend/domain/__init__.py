"""
Domain Layer

Core download-job types, kept free of transport and process concerns.

Structure:
- value_objects/: Immutable value types without identity
"""
