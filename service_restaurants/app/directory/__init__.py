"""
Restaurant directory domain: request bodies and the operations behind the routes.
"""

from .service import RestaurantDirectory

__all__ = ["RestaurantDirectory"]
