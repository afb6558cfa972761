"""
AInspire - a reference-frame collector for film and video.

Videos go in, sampled stills come out labeled by an AI classifier
(composition, action, lighting, color, setting) and land in a searchable,
exportable collection.

- core: Framework-agnostic pipeline logic (queues, sampler, collection)
- infrastructure: External integrations (FFmpeg, Anthropic, credential file)
- api: FastAPI routes and dependencies
- config: Application configuration
"""

__version__ = "0.1.0"
