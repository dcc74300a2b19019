"""
CF-DDNS keeps Cloudflare A records pointed at the host's public IPv4 address.
"""

__version__ = "0.1.0"
