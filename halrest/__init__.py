"""
HalRest — HAL/Problem REST Resource Controllers for FastAPI
=============================================================

What: Maps HTTP verbs on a resource route to a pluggable backend and answers
      with HAL documents (``application/hal+json``) or Problem details
      (``application/problem+json``).

Architecture:
    ┌─────────────────────────────────────┐
    │   routing.register_resource         │  ← FastAPI routes per resource
    ├─────────────────────────────────────┤
    │   controller.RestController         │  ← method gate, events, dispatch
    ├──────────────┬──────────────────────┤
    │ hal / negotiation │ events / problem │  ← decoration, rendering, hooks
    ├──────────────┴──────────────────────┤
    │   resource.ResourceBackend          │  ← business logic and storage
    └─────────────────────────────────────┘
"""

__version__ = "1.0.0"
