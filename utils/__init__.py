"""
Utilities package for the AI Image Studio.
"""
