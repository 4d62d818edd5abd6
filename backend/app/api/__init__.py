"""
Tubely API Package.

Package Structure:
    - deps.py: FastAPI dependency providers wiring services together
    - v1/: Version 1 API endpoints
        - videos.py: Video records and uploads

All endpoints are versioned under the /api/v1 URL prefix.
"""
