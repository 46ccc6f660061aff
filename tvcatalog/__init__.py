"""
Canonical live-TV catalog built from noisy provider stream lists.

Deutsch:
    Kanonischer Live-TV-Katalog aus verrauschten Anbieter-Streamlisten.
"""

__version__ = "0.4.0"
