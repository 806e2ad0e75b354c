"""Measure the amplification factor of TURN servers
"""
__version__ = '0.1.0'
