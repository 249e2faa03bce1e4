"""
Adapters package for identity bounded context.
"""
