"""
Territory CLI - Command-line tools for the territory claim engine.

Usage:
    territory-cli replay walk.yaml --territories territories.yaml --owner u-1
    territory-cli convert --lat 31.2304 --lon 121.4737
    territory-cli area walk.yaml
"""

__version__ = "1.0.0"
