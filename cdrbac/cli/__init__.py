"""
Command line interface for cdrbac.
"""
