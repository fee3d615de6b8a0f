"""
RxScribe Backend
================

Handwritten prescription transcription and health-record AI helpers.

Layers:
    ┌─────────────────────────────────────┐
    │           Routes (API Layer)        │  ← HTTP concerns only
    ├─────────────────────────────────────┤
    │   Services (AI, flow, record store) │  ← capabilities, orchestration
    ├─────────────────────────────────────┤
    │       Models & Schemas (Data)       │  ← SQLAlchemy ORM + Pydantic
    ├─────────────────────────────────────┤
    │   Providers & Persistence adapters  │  ← Gemini, async SQLAlchemy
    └─────────────────────────────────────┘
"""

__version__ = "1.0.0"
