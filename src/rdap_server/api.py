"""
HTTP boundary for the RDAP server (FastAPI).

Every route answers GET with an RDAP JSON body and HEAD with the same
status and headers but no body. Errors are rendered as RDAP error objects
(RFC 9083 section 6) with the status carried by the exception.
"""

from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse, Response

from . import __version__
from .enums import ResourceType
from .exceptions import NotFoundError, RDAPServerError
from .service import RDAPService

# Search collections exposed over HTTP
SEARCH_COLLECTIONS = frozenset({
    ResourceType.DOMAIN,
    ResourceType.NAMESERVER,
    ResourceType.ENTITY,
})


def create_app(service: RDAPService, close_on_shutdown: bool = False) -> FastAPI:
    """
    Build the FastAPI application around a service handle.

    Args:
        service: Service handle every route queries
        close_on_shutdown: Close the service (and its store) when the app stops
    """
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        yield
        if close_on_shutdown:
            await service.close()

    app = FastAPI(
        title="RDAP Server",
        description="Registration Data Access Protocol server (RFC 9082 / RFC 9083)",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.service = service

    content_type = service.config.rdap.content_type

    def rdap_response(body: Optional[dict], status_code: int = 200) -> Response:
        if body is None:
            return Response(status_code=status_code, media_type=content_type)
        return JSONResponse(content=body, status_code=status_code, media_type=content_type)

    @app.exception_handler(RDAPServerError)
    async def rdap_error_handler(request: Request, exc: RDAPServerError) -> Response:
        if request.method == "HEAD":
            return rdap_response(None, exc.http_status)
        return rdap_response(exc.to_rdap(), exc.http_status)

    @app.exception_handler(Exception)
    async def unexpected_error_handler(request: Request, exc: Exception) -> Response:
        if service.logger:
            service.logger.log_error(
                "api",
                f"Unhandled error serving {request.url.path}",
                error=exc,
                additional_data={"method": request.method},
            )
        body = {
            "errorCode": 500,
            "title": "Internal Server Error",
            "description": ["The server encountered an unexpected error"],
        }
        return rdap_response(None if request.method == "HEAD" else body, 500)

    @app.api_route("/rdap/autnum/{asn}", methods=["GET", "HEAD"])
    async def autnum(request: Request, asn: str) -> Response:
        """RDAP autonomous system lookup (RFC 9082 section 3.1.2)."""
        if request.method == "HEAD":
            await service.autnum_exists(asn)
            return rdap_response(None)
        return rdap_response(await service.lookup_autnum(asn))

    @app.api_route("/rdap/ip/{query:path}", methods=["GET", "HEAD"])
    async def ip_network(request: Request, query: str) -> Response:
        """RDAP IP network lookup by address or CIDR (RFC 9082 section 3.1.1)."""
        if request.method == "HEAD":
            await service.network_exists(query)
            return rdap_response(None)
        return rdap_response(await service.lookup_network(query))

    @app.api_route("/rdap/{collection}", methods=["GET", "HEAD"])
    async def search(request: Request, collection: str) -> Response:
        """RDAP search; every query parameter is a field glob (RFC 9082 section 3.2)."""
        resource_type = ResourceType.from_search_path(collection)
        if resource_type not in SEARCH_COLLECTIONS:
            raise NotFoundError(
                code="unknown_resource",
                message=f"Unknown search collection: {collection}",
                details={"resource": collection},
            )

        field_globs = dict(request.query_params)
        if request.method == "HEAD":
            await service.search_exists(resource_type, field_globs)
            return rdap_response(None)
        return rdap_response(await service.search(resource_type, field_globs))

    @app.api_route("/rdap/{resource}/{handle}", methods=["GET", "HEAD"])
    async def lookup(request: Request, resource: str, handle: str) -> Response:
        """RDAP exact lookup of a domain, nameserver or entity."""
        resource_type = ResourceType.from_segment(resource)
        if request.method == "HEAD":
            await service.lookup_exists(resource_type, handle)
            return rdap_response(None)
        return rdap_response(await service.lookup(resource_type, handle))

    return app
