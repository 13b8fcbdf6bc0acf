"""
Test configuration package: pytest markers and collection hooks.
"""
