"""
Temporal wiring for the store repositories.

``activities`` holds the worker-side activity registrations and must only
be imported by the worker. ``proxies`` holds the workflow-side
implementations and is safe to import inside the workflow sandbox.
"""
