"""Core processing modules package.

This package contains the Simplidoc document assistant:
- analysis: category-driven upload, extraction and summarisation pipeline
- chat: per-document chat sessions with single-flight turns
- gateway: storage, extraction, language model and speech clients
- stores: document and conversation persistence (in-memory, PostgreSQL)
- speech: per-view voice sessions
- library: search, filters and dashboard counts
- usage_tracker: token, latency and cost logging for model calls
"""
