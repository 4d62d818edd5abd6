"""
Core infrastructure for the Tubely backend.

- auth: Bearer JWT authentication dependency
- database: MongoDB async client with Motor driver and connection pooling
- errors: Pipeline error taxonomy and HTTP status mapping
- middleware: Upload body size limits
"""
