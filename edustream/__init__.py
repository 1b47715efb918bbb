"""
EduStream backend services: auth, course catalog and subscription billing.
"""
__version__ = "0.1.0"
