"""
Pytest fixtures for the TypedAPI test suite.

Fixtures are organized by subsystem:
- http_mocking: scripted transports, mock responses and httpx MockTransport clients
"""
