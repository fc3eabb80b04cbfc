"""
Authentication application.

Email-based users and the Profile holding the billing identity that
payment gateways receive as customer details.

Usage:
    from authentication.models import User, Profile
"""
