"""Audit trail and account security"""
