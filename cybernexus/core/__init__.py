"""Core configuration, logging, errors and persistence primitives"""
