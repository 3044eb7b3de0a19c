"""Livecast livestreaming backend.

Modules:
    - core: Configuration, database, Redis, storage, Celery, observability
    - modules.auth: Users, access tokens and role checks
    - modules.recording: Recording path parsing, lookup and matching
    - modules.stream: Broadcast lifecycle, discovery and recordings
"""

__version__ = "0.1.0"
