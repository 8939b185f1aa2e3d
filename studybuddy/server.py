"""
FastAPI server for the StudyBuddy matching service.

Exposes:
  - GET  /health, GET / - System endpoints
  - POST /run-graph - Execute a graph (matching, study_assistant)
  - GET  /users/{user_id}/candidates - Ranked study-buddy candidates
  - POST /likes, POST /declines - Swipe actions (consume daily quota)
  - GET/POST /users/{user_id}/swipes - Swipe quota status / consume one swipe
  - POST /blocks, POST /reports - Moderation
  - GET  /admin/reviews, POST /admin/users/{user_id}/review - Profile review
  - POST /users/{user_id}/focus-sessions, POST /users/{user_id}/purchases - Tokens
  - GET /docs, GET /openapi.json - API documentation

The requesting user id is always passed explicitly; end-user authentication
happens in the web backend that calls this service with AI_SERVICE_TOKEN.
"""

from dotenv import load_dotenv
load_dotenv()

from fastapi import Depends, FastAPI, HTTPException, Query, Request, status, Header
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field
from typing import Dict, Any, List, Literal, Optional, Annotated
import time

# Import configuration (loads .env automatically)
from studybuddy.config import config, validate_config

# Import logging setup
from studybuddy.utils.logging_config import logger, setup_langsmith, setup_logging

from studybuddy.graphs.matching import MatchingGraph, get_potential_matches
from studybuddy.graphs.study_assistant import create_study_assistant_graph
from studybuddy.tools.moderation_tools import (
    block_user,
    list_pending_reviews,
    report_user,
    set_review_status,
)
from studybuddy.tools.swipe_tools import (
    get_swipe_status,
    swipe_decline,
    swipe_like,
    update_swipe_count,
)
from studybuddy.tools.token_tools import award_focus_session, purchase_item
from studybuddy.utils.errors import (
    DOMAIN_ERRORS,
    FirestoreUnavailableError,
    InsufficientTokensError,
    InvalidInputError,
    ProfileNotFoundError,
    SwipeLimitExceededError,
)

# Setup logging
setup_logging(debug=config.DEBUG)
setup_langsmith()

# ============================================================
# VALIDATE CONFIGURATION AT STARTUP
# ============================================================
try:
    config_status = validate_config()
    logger.info("✅ Configuration validated successfully")
    for key, value in config_status.items():
        logger.info(f"  {key}: {value}")
except ValueError as e:
    logger.error(f"❌ Configuration error: {e}")
    exit(1)

# ============================================================
# FASTAPI APPLICATION
# ============================================================
app = FastAPI(
    title="StudyBuddy Matching Service",
    description="Study-buddy candidate ranking, swipes, moderation and study tokens",
    version="1.0.0",
)

# ============================================================
# CORS CONFIGURATION
# ============================================================
origins = [
    "http://localhost:3000",  # Next.js dev
    "http://localhost:5173",  # Vite dev
]

app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Domain error -> HTTP status
ERROR_STATUS = {
    ProfileNotFoundError: status.HTTP_404_NOT_FOUND,
    InvalidInputError: status.HTTP_400_BAD_REQUEST,
    SwipeLimitExceededError: status.HTTP_429_TOO_MANY_REQUESTS,
    InsufficientTokensError: status.HTTP_409_CONFLICT,
    FirestoreUnavailableError: status.HTTP_503_SERVICE_UNAVAILABLE,
}

VALID_GRAPHS = ("matching", "study_assistant")


# ============================================================
# REQUEST/RESPONSE MODELS
# ============================================================
class GraphRequest(BaseModel):
    """
    Request body for /run-graph endpoint.

    Attributes:
        graph (str): Name of graph to execute. Options: 'matching', 'study_assistant'
        input (dict): Input state for the graph.
    """
    graph: str
    input: Dict[str, Any]


class GraphResponse(BaseModel):
    """
    Response body for /run-graph endpoint.

    Attributes:
        success (bool): Whether graph executed successfully
        graph (str): Name of the graph that was executed
        data (dict): Output from the graph
        error (Optional[str]): Error message if something went wrong
    """
    success: bool
    graph: str
    data: Dict[str, Any] = {}
    error: Optional[str] = None


class SwipeRequest(BaseModel):
    """A like or decline from one user toward another."""
    from_user_id: str = Field(..., min_length=1)
    to_user_id: str = Field(..., min_length=1)


class BlockRequest(BaseModel):
    blocker_id: str = Field(..., min_length=1)
    blocked_id: str = Field(..., min_length=1)


class ReportRequest(BaseModel):
    reporter_id: str = Field(..., min_length=1)
    reported_user_id: str = Field(..., min_length=1)
    reason: str
    description: Optional[str] = Field(None, max_length=1000)


class ReviewRequest(BaseModel):
    status: Literal["pending", "approved", "rejected"]


class PurchaseRequest(BaseModel):
    """The price always comes from the shop catalog, never from the caller."""
    item_id: str = Field(..., min_length=1)


class CandidateResponse(BaseModel):
    user: Dict[str, Any]
    score: float
    reasons: List[str]


# ============================================================
# DEPENDENCIES
# ============================================================
def require_service_token(
    authorization: Annotated[Optional[str], Header()] = None,
) -> None:
    """Reject calls without the shared service token, when one is configured."""

    if config.AI_SERVICE_TOKEN:
        expected = f"Bearer {config.AI_SERVICE_TOKEN}"
        if authorization != expected:
            logger.warning("Unauthorized request: invalid or missing token")
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Unauthorized",
            )


# ============================================================
# MIDDLEWARE
# ============================================================
@app.middleware("http")
async def add_process_time_header(request: Request, call_next):
    """
    Middleware to track request processing time.

    Adds X-Process-Time header to all responses showing how long request took.
    """
    start_time = time.time()
    response = await call_next(request)
    process_time = time.time() - start_time
    response.headers["X-Process-Time"] = str(process_time)
    return response


# ============================================================
# SYSTEM ROUTES
# ============================================================

@app.get("/health", tags=["System"])
async def health_check() -> Dict[str, str]:
    """
    Health check endpoint.

    Returns:
        dict: {"status": "healthy"}
    """
    return {"status": "healthy"}


@app.get("/", tags=["System"])
async def root() -> Dict[str, str]:
    """Information about the API and how to access documentation."""
    return {
        "service": "StudyBuddy Matching Service",
        "version": "1.0.0",
        "docs": "/docs",
        "health": "/health",
    }


# ============================================================
# GRAPHS
# ============================================================

def _run_matching(graph_input: Dict[str, Any]) -> Dict[str, Any]:
    limit = graph_input.get("limit", config.DEFAULT_MATCH_LIMIT)
    if not isinstance(limit, int) or not 1 <= limit <= config.MAX_MATCH_LIMIT:
        raise InvalidInputError(
            f"limit must be an integer between 1 and {config.MAX_MATCH_LIMIT}"
        )
    result = MatchingGraph(timeout=config.GRAPH_TIMEOUT).run(
        {"user_id": graph_input.get("user_id", ""), "limit": limit}
    )
    # Raw candidate documents hold Firestore types; only the shaped output leaves.
    return {
        "final_matches": result["final_matches"],
        "response_metadata": result["response_metadata"],
    }


def _run_study_assistant(graph_input: Dict[str, Any]) -> Dict[str, Any]:
    graph = create_study_assistant_graph()
    result = graph.invoke(graph_input)
    return {
        key: result[key]
        for key in ("reply", "provider", "error")
        if key in result
    }


@app.post(
    "/run-graph",
    response_model=GraphResponse,
    tags=["Graphs"],
    dependencies=[Depends(require_service_token)],
)
def run_graph(request: GraphRequest) -> GraphResponse:
    """
    Execute a LangGraph graph and return results.

    Supported graphs:
      - matching: ranked study-buddy candidates for input.user_id (input.limit optional)
      - study_assistant: answer input.message, replaying input.conversation_history

    Raises:
        HTTPException: If the graph doesn't exist or fails to execute
    """
    logger.info(f"Received request for graph: {request.graph}")
    logger.debug(f"Input keys: {list(request.input.keys())}")

    if request.graph == "matching":
        runner = _run_matching
    elif request.graph == "study_assistant":
        runner = _run_study_assistant
    else:
        logger.error(f"Unknown graph: {request.graph}")
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Unknown graph: {request.graph}. "
                   f"Valid options: {', '.join(VALID_GRAPHS)}"
        )

    start_time = time.time()
    try:
        data = runner(request.input)
    except DOMAIN_ERRORS:
        raise
    except Exception as e:
        execution_time = time.time() - start_time
        logger.error(f"❌ {request.graph} graph failed after {execution_time:.2f}s: {str(e)}")
        logger.exception("Full traceback:")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Graph execution failed: {str(e)}"
        )

    execution_time = time.time() - start_time
    logger.info(
        "run-graph summary: graph=%s input_keys=%s success=%s time=%.2fs",
        request.graph,
        list(request.input.keys()),
        not data.get("error"),
        execution_time,
    )

    return GraphResponse(
        success=not data.get("error"),
        graph=request.graph,
        data=data,
        error=data.get("error"),
    )


# ============================================================
# MATCHING
# ============================================================

@app.get(
    "/users/{user_id}/candidates",
    response_model=List[CandidateResponse],
    tags=["Matching"],
    dependencies=[Depends(require_service_token)],
)
def list_candidates(
    user_id: str,
    limit: int = Query(config.DEFAULT_MATCH_LIMIT, ge=1, le=config.MAX_MATCH_LIMIT),
):
    """Ranked candidates for the user, best first."""
    return get_potential_matches(user_id, limit)


@app.post("/likes", tags=["Matching"], dependencies=[Depends(require_service_token)])
def like(request: SwipeRequest) -> Dict[str, Any]:
    """
    Like a candidate.

    The like and its swipe commit together: 429 when the quota is used up, 404
    for an unknown target, and neither case charges a swipe. A reciprocal like
    returns isMatch=true and the match id.
    """
    result = swipe_like(request.from_user_id, request.to_user_id)
    return {"success": True, **result}


@app.post("/declines", tags=["Matching"], dependencies=[Depends(require_service_token)])
def decline(request: SwipeRequest) -> Dict[str, Any]:
    """Decline a candidate. Consumes one swipe in the same transaction."""
    swipe_count = swipe_decline(request.from_user_id, request.to_user_id)
    return {"success": True, "swipeCount": swipe_count}


@app.get(
    "/users/{user_id}/swipes",
    tags=["Matching"],
    dependencies=[Depends(require_service_token)],
)
def swipe_status(user_id: str) -> Dict[str, Any]:
    """Today's swipe usage and limit."""
    return get_swipe_status(user_id)


@app.post(
    "/users/{user_id}/swipes",
    tags=["Matching"],
    dependencies=[Depends(require_service_token)],
)
def consume_swipe(user_id: str) -> Dict[str, Any]:
    """Consume one swipe without recording a like or decline."""
    count = update_swipe_count(user_id)
    return {"success": True, "swipeCount": count}


# ============================================================
# MODERATION
# ============================================================

@app.post("/blocks", tags=["Moderation"], dependencies=[Depends(require_service_token)])
def block(request: BlockRequest) -> Dict[str, Any]:
    block_user(request.blocker_id, request.blocked_id)
    return {"success": True}


@app.post(
    "/reports",
    status_code=status.HTTP_201_CREATED,
    tags=["Moderation"],
    dependencies=[Depends(require_service_token)],
)
def report(request: ReportRequest) -> Dict[str, Any]:
    report_id = report_user(
        request.reporter_id,
        request.reported_user_id,
        request.reason,
        request.description,
    )
    return {"success": True, "reportId": report_id}


@app.get("/admin/reviews", tags=["Admin"], dependencies=[Depends(require_service_token)])
def pending_reviews(limit: int = Query(50, ge=1, le=200)) -> Dict[str, Any]:
    """Profiles waiting for admin review."""
    profiles = list_pending_reviews(limit=limit)
    return {
        "success": True,
        "users": [
            {
                "uid": p.get("uid"),
                "displayName": p.get("displayName"),
                "school": p.get("school"),
                "avatar": p.get("avatar"),
            }
            for p in profiles
        ],
    }


@app.post(
    "/admin/users/{user_id}/review",
    tags=["Admin"],
    dependencies=[Depends(require_service_token)],
)
def review_user(user_id: str, request: ReviewRequest) -> Dict[str, Any]:
    set_review_status(user_id, request.status)
    return {"success": True, "reviewStatus": request.status}


# ============================================================
# TOKENS
# ============================================================

@app.post(
    "/users/{user_id}/focus-sessions",
    tags=["Tokens"],
    dependencies=[Depends(require_service_token)],
)
def complete_focus_session(user_id: str) -> Dict[str, Any]:
    """Credit a finished Pomodoro focus session."""
    awarded = award_focus_session(user_id)
    return {"success": True, "tokensAwarded": awarded}


@app.post(
    "/users/{user_id}/purchases",
    tags=["Tokens"],
    dependencies=[Depends(require_service_token)],
)
def purchase(user_id: str, request: PurchaseRequest) -> Dict[str, Any]:
    balance = purchase_item(user_id, request.item_id)
    return {"success": True, "tokens": balance}


# ============================================================
# ERROR HANDLERS
# ============================================================

async def domain_exception_handler(request: Request, exc: Exception):
    """Map domain errors onto their HTTP status with the standard error body."""
    status_code = ERROR_STATUS.get(type(exc), status.HTTP_500_INTERNAL_SERVER_ERROR)
    if status_code >= 500:
        logger.error(f"{type(exc).__name__} on {request.url.path}: {exc}")
        detail = "Data store unavailable, please try again"
    else:
        logger.info(f"{type(exc).__name__} on {request.url.path}: {exc}")
        detail = str(exc)
    return JSONResponse(
        status_code=status_code,
        content={
            "success": False,
            "error": detail,
            "status_code": status_code,
        },
    )


for _error_type in ERROR_STATUS:
    app.add_exception_handler(_error_type, domain_exception_handler)


@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException):
    """
    Handle HTTP exceptions with consistent error response format.
    """
    logger.error(f"HTTP Exception: {exc.status_code} - {exc.detail}")
    return JSONResponse(
        status_code=exc.status_code,
        content={
            "success": False,
            "error": exc.detail,
            "status_code": exc.status_code
        }
    )


@app.exception_handler(Exception)
async def general_exception_handler(request: Request, exc: Exception):
    """
    Handle unexpected exceptions.

    Never returns the exception message to the client; use logging instead.
    """
    logger.error(f"Unhandled exception: {str(exc)}")
    logger.exception("Full traceback:")
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "success": False,
            "error": "Internal server error",
            "status_code": 500
        }
    )


# ============================================================
# STARTUP EVENTS
# ============================================================

@app.on_event("startup")
async def startup_event():
    """
    Run when the application starts.

    Configuration is already validated above (in module-level code),
    but we log the effective matching settings here for visibility.
    """
    logger.info("=" * 60)
    logger.info("🚀 StudyBuddy Matching Service Starting Up")
    logger.info("=" * 60)

    logger.info(f"Firebase Project: {config.FIREBASE_PROJECT_ID}")
    logger.info(f"Debug Mode: {config.DEBUG}")
    logger.info(f"Swipe limits: free={config.FREE_DAILY_SWIPES} premium={config.PREMIUM_DAILY_SWIPES} ({config.SWIPE_TIMEZONE})")
    logger.info(f"Exclude declined from ranking: {config.EXCLUDE_DECLINED_FROM_RANKING}")

    logger.info("=" * 60)
    logger.info("✅ Service ready to handle requests")
    logger.info("=" * 60)


@app.on_event("shutdown")
async def shutdown_event():
    logger.info("🛑 StudyBuddy Matching Service Shutting Down")


# ============================================================
# ENTRY POINT
# ============================================================

if __name__ == "__main__":
    """
    Run with: python -m uvicorn studybuddy.server:app --reload
    """
    import uvicorn
    uvicorn.run(
        app,
        host=config.HOST,
        port=config.PORT,
        log_level="info" if not config.DEBUG else "debug"
    )
