"""
R-Planet Claim Bot

Automation for the R-Planet game on the WAX blockchain that provides:
- Periodic claim limit increases paid in AETHER
- Periodic AETHER claims within an acceptable waste tolerance
- Failover across interchangeable public WAX RPC nodes
- Local transaction signing for the configured accounts
"""

__version__ = "1.0.0"
__author__ = "R-Planet Bot Team"
