"""
CyberNexus ISMS

Risk register, Statement of Applicability, audits and policies for an
ISO 27001 information security management system.
"""

__version__ = "1.0.0"
