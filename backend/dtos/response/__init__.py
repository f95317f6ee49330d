"""
Response DTOs

Outgoing response bodies for the download and metadata endpoints.
"""
