"""
TOPDAG INFRASTRUCTURE - Configuration and mutation logging.
"""
