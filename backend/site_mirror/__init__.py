"""
Site mirroring service: clone a web page and its assets into a zip archive
"""

__version__ = "0.1.0"
