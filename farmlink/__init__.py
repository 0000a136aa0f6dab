"""
FarmLink Client Session Core.

Client-side session and authorization layer for the FarmLink
marketplace: token lifecycle, multi-role identity, route gating, the
request dispatcher, and the development-mode fixture responder.
"""

__version__ = "0.4.0"
