"""Internal and external audits with their findings"""
