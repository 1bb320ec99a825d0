"""
portfolio-sync - Notion to static portfolio site

Pulls published articles and projects from Notion, flattens their bodies
to HTML or typed blocks, localizes project images and writes the JSON
snapshots the site renders from.
"""

__version__ = "0.1.0"
