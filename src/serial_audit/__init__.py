"""Audit cert-manager Certificates against a published list of affected serial numbers."""

__version__ = "0.1.0"
