"""
Request dependencies shared by the routers
"""

from fastapi import Request

from ..services import ServiceRegistry


def get_services(request: Request) -> ServiceRegistry:
    """Service registry built by create_app"""
    return request.app.state.services
