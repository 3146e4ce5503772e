"""Statement of Applicability"""
