"""
casguard - CAS single-sign-on enforcement for FastAPI/Starlette services
"""

__version__ = "0.1.0"
