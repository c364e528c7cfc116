"""API route registration."""

from fastapi import FastAPI

from barter.api.routes import bids, likes, notifications, products, system


def include_api_routes(app: FastAPI) -> None:
    """Attach all API routers to the application."""

    app.include_router(system.router)
    app.include_router(products.router)
    app.include_router(bids.router)
    app.include_router(likes.router)
    app.include_router(notifications.router)
