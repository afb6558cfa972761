"""
Infrastructure layer - external service integrations.

Each subdirectory wraps an external dependency:
- anthropic: Claude API client used as the image classifier
- video: FFmpeg-based frame decoding
- credentials: Local persistence of the API key

These wrappers translate between external formats and our domain models.
"""
