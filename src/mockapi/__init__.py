"""
mockapi

Configurable HTTP mock server: register mocks at runtime and serve every
other request from the best-matching one.
"""

__version__ = '1.0.0'
