# Schemas package init
"""
HalRest — API Schemas
=======================

What:  Pydantic models describing response bodies for the OpenAPI document.
How:   Routes reference them in ``responses=`` / ``response_model=``; the
       problem and HAL bodies themselves are built by halrest.problem and
       halrest.hal.
"""
