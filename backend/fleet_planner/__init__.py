"""
Fleet trip planning backend.
"""
