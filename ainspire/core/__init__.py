"""
Core pipeline logic for reference collection.

This package is framework-agnostic - it doesn't import FastAPI, FFmpeg
wrappers, or the Anthropic SDK. Decoders and classifiers are reached
through protocols so the queues can be tested with plain fakes.
"""
