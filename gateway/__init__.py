"""
Storefront Gateway - request sanitization and CORS enforcement in front of the storefront API
"""

__version__ = "0.1.0"
