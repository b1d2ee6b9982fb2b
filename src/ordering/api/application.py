"""FastAPI application factory for the ordering domain.

Every request runs inside the domain's context and carries a request id in
its log context. Business errors are answered with the standard envelope.
"""

from uuid import uuid4

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from protean.domain import Domain

from ordering.api.errors import register_error_handlers
from ordering.api.routes import config_router, order_router, product_router
from ordering.utils.logging import add_context, clear_context


def build_app(domain: Domain, title: str = "Ordering API") -> FastAPI:
    app = FastAPI(
        title=title,
        description="Order placement with stock reservation, tax audit and simulated payments",
    )
    app.state.domain = domain

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.middleware("http")
    async def domain_context_middleware(request: Request, call_next):
        """Push the domain context and bind request details into the log context."""
        clear_context()
        request_id = request.headers.get("X-Request-Id") or uuid4().hex
        add_context(request_id=request_id, method=request.method, path=request.url.path)
        with domain.domain_context():
            response = await call_next(request)
        response.headers["X-Request-Id"] = request_id
        return response

    register_error_handlers(app)
    app.include_router(order_router)
    app.include_router(product_router)
    app.include_router(config_router)
    return app
