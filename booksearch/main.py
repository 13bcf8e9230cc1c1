"""
FastAPI application serving the Book Search GraphQL API.
"""

from contextlib import asynccontextmanager
from datetime import datetime, timezone

import structlog
from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from booksearch.auth import TokenManager
from booksearch.config import config
from booksearch.database import MongoDBManager
from booksearch.models import ErrorResponse, HealthResponse
from booksearch.schema import create_graphql_router

# Setup logging
logger = structlog.get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager."""
    # Startup
    logger.info("Starting Book Search API")
    
    manager = MongoDBManager(
        config.mongodb_url,
        config.mongodb_database,
        config.users_collection
    )
    try:
        app.state.users = await manager.connect()
        app.state.db_manager = manager
        logger.info("Database connection established")
    except Exception as e:
        logger.error("Failed to connect to database", error=str(e))
        raise
    
    yield
    
    # Shutdown
    logger.info("Shutting down Book Search API")
    await manager.disconnect()


# Create FastAPI application
app = FastAPI(
    title=config.api_title,
    description="""
    GraphQL API for user accounts and saved book lists.
    
    ## Operations
    
    * **Queries**: `user(id, username)`, `me`
    * **Mutations**: `addUser`, `login`, `saveBook`, `deleteBook`
    
    ## Authentication
    
    `addUser` and `login` return a token. Send it on later requests:
    
    ```
    Authorization: Bearer your_token_here
    ```
    """,
    version=config.api_version,
    lifespan=lifespan
)

app.state.tokens = TokenManager(
    config.secret_key,
    algorithm=config.algorithm,
    expire_minutes=config.access_token_expire_minutes
)
app.state.users = None
app.state.db_manager = None

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=config.cors_origins,
    allow_credentials=config.cors_allow_credentials,
    allow_methods=config.cors_allow_methods,
    allow_headers=config.cors_allow_headers,
)

app.include_router(create_graphql_router(graphiql=config.graphiql), prefix="")


@app.exception_handler(Exception)
async def general_exception_handler(request: Request, exc: Exception):
    """Handle general exceptions."""
    logger.error("Unhandled exception", error=str(exc), path=request.url.path)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=ErrorResponse(
            error="Internal server error",
            detail=str(exc) if config.debug else None,
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR
        ).model_dump()
    )


# Health check endpoint (no authentication required)
@app.get("/health", response_model=HealthResponse, tags=["Health"])
async def health_check(request: Request):
    """Health check endpoint."""
    db_status = "unavailable"
    manager = request.app.state.db_manager
    if manager:
        health_info = await manager.health_check()
        db_status = health_info.get("status", "unknown")
    
    return HealthResponse(
        status="healthy" if db_status == "healthy" else "degraded",
        timestamp=datetime.now(timezone.utc),
        version=config.api_version,
        database_status=db_status
    )


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "booksearch.main:app",
        host=config.host,
        port=config.port,
        reload=config.debug,
        log_level=config.log_level.lower()
    )
