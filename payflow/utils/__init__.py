"""
PayFlow HR - Utilities
"""
