"""
RxScribe Backend: API Routes
=============================

Route Inventory:
    - handwriting.py: POST /api/handwriting/recognize
                      POST /api/handwriting/recognize/upload
                      POST /api/handwriting/records
    - records.py:     POST /api/records/summarize
                      POST /api/records/analyze
    - health.py:      GET  /health

Handlers stay thin: they extract request data, call a service and shape the
response. Errors propagate to the global handlers in main.py.
"""
