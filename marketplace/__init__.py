"""
Marketplace Client Package
Version: 1.0

IMPORTANT: Keep this file minimal to avoid circular imports.
Import modules directly where needed.
"""

# Import modules directly in the code that needs them:
#   from marketplace.api_gateway import APIGateway
#   from marketplace.session import SessionBoundary
