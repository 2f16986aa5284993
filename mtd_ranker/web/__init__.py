"""
HTTP query surface (FastAPI + Jinja2, served by uvicorn).

Modules:
  app    — ``create_app(controller)`` route definitions
  server — ``QueryServer`` run/stop wrapper around ``uvicorn.Server``
"""
