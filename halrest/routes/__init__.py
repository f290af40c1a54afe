# Routes package init
"""
HalRest — Routes Package
==========================

Route inventory:
    - health.py:  GET /health
    Resource routes are not declared here: each RestController is mounted by
    halrest.routing.register_resource when the app is built.
"""
