"""
Bookshop Test Suite

Tests are organized into:
- unit/: Services, repositories, session store and security helpers
- integration/: HTTP API through an in-process ASGI client
"""
