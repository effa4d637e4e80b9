"""Verification engine: path filtering, hashing, scanners and orchestration."""
