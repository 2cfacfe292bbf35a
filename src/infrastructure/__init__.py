"""Infrastructure layer.

Adapters that perform I/O on behalf of the domain: request scheduling,
elevation services, tile imagery and diagnostics.
"""
