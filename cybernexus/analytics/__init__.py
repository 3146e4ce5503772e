"""
Analytics Module

Compliance aggregation, alert evaluation and dashboard assembly.
"""
