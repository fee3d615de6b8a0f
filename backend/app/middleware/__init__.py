"""
RxScribe Backend: Middleware
=============================

Request → [Request ID] → [Rate Limit] → [Logging] → [GZip] → [CORS] → Route

Request ID runs first so every later log line and error body, including a
429 from the rate limiter, carries the correlation ID.
"""
