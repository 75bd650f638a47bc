"""
Authentication package for the gateway.

This package implements GitHub sign-in (OAuth2 Authorization Code Flow), a
single email-domain allowlist, and short-lived signed bearer tokens that
protect the rest of the API.
"""
