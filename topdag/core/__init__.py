"""
TOPDAG CORE - Graph store, layering, satisfiability and validation.
"""
