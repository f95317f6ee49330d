"""
Request DTOs

Incoming request bodies. Fields are optional here so that missing values
can be reported together by the job orchestrator instead of one at a time.
"""
