"""
Domain Value Objects

Value objects are immutable types compared by value, not by ID.

Examples:
- JobState: Lifecycle state of a download job
- JobOptions: Discriminated union of simple/expert download options
"""
