"""Policy library"""
