"""
Data Transfer Objects (DTOs) Layer

DTOs describe the JSON bodies accepted and returned by the HTTP API.

Structure:
- request/: DTOs for incoming API requests
- response/: DTOs for outgoing API responses
"""
