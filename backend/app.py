from fastapi import FastAPI, HTTPException, Request
from contextlib import asynccontextmanager
from fastapi.middleware.cors import CORSMiddleware
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from fastapi.encoders import jsonable_encoder
from pydantic import BaseModel
from typing import Optional, Dict, Any, List
import os
import logging
from dotenv import load_dotenv

# Load environment variables
load_dotenv()

# Configure logging
logging.basicConfig(level=os.getenv("LOG_LEVEL", "INFO").upper())
logger = logging.getLogger(__name__)

from services.process_guide_service import (
    ProcessGuideService, ProcessGuideServiceError, ProcessNotFoundError
)
from services.step_index import StepIndex
from services.tree_resolver import TreeResolver
from services.walkthrough import WalkthroughNavigator, WalkthroughError
from translators.flowchart_layout import FlowchartLayoutEngine
from translators.reactflow_translator import ReactFlowTranslator
from schemas.process_guide import (
    Process, ProcessGuideCreate, ProcessGuideUpdate, ProcessGuideDetail,
    DatabaseExport, DatabaseStats
)
from schemas.process_tree import ResolvedTree, FlowchartLayout, WalkthroughState


def get_database_path() -> str:
    database_path = os.getenv("DATABASE_PATH", "process_guide.db")
    if not os.path.isabs(database_path):
        # Make path relative to backend directory
        database_path = os.path.join(os.path.dirname(__file__), database_path)
    return database_path


def get_allowed_origins() -> List[str]:
    configured = os.getenv("CORS_ORIGINS")
    if configured:
        return [origin.strip() for origin in configured.split(",") if origin.strip()]
    return [
        "http://localhost:5173",
        "http://localhost:5174",
        "http://localhost:3000",
        "http://localhost:8000",
    ]


layout_engine = FlowchartLayoutEngine()
reactflow_translator = ReactFlowTranslator(layout_engine)

# Lifespan event handler
@asynccontextmanager
async def lifespan(app: FastAPI):
    """Open the database on startup and close it on shutdown"""
    database_path = get_database_path()
    logger.info(f"Using SQLite database at: {database_path}")
    service = ProcessGuideService(database_path)
    try:
        await service.connect()
        logger.info("Database connection established successfully")
        if os.getenv("SEED_SAMPLE_GUIDES", "false").lower() == "true":
            stats = await service.get_stats()
            if stats.processes == 0:
                await service.seed_samples()
    except Exception as e:
        logger.error(f"Failed to connect to database: {e}")
        raise
    app.state.guide_service = service

    yield

    logger.info("Shutting down Process Guide API...")
    try:
        await service.close()
        logger.info("Database connection closed successfully")
    except Exception as e:
        logger.error(f"Error closing database connection: {e}")

app = FastAPI(
    title="Process Guide API",
    version="1.0.0",
    lifespan=lifespan,
)

allowed_origins = get_allowed_origins()
logger.info(f"CORS enabled for origins: {allowed_origins}")

app.add_middleware(
    CORSMiddleware,
    allow_origins=allowed_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
    allow_headers=["*"],
    max_age=3600,
)

# Add validation error handler
@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    logger.warning(f"Validation error for {request.url}: {exc.errors()}")
    return JSONResponse(status_code=422, content={"detail": jsonable_encoder(exc.errors())})


# ============================================================================
# HELPER FUNCTIONS
# ============================================================================

def guide_service(request: Request) -> ProcessGuideService:
    return request.app.state.guide_service


async def load_detail(request: Request, process_id: str) -> ProcessGuideDetail:
    """Fetch a process with its rows, mapping a missing id to 404."""
    try:
        return await guide_service(request).get_process_detail(process_id)
    except ProcessNotFoundError:
        raise HTTPException(status_code=404, detail="Process not found")


def resolve_detail(detail: ProcessGuideDetail) -> ResolvedTree:
    return TreeResolver(detail.steps, detail.branches).resolve()


# ============================================================================
# REQUEST / RESPONSE MODELS
# ============================================================================

class FlowchartResponse(BaseModel):
    process: Process
    layout: FlowchartLayout
    reactflow: Dict[str, Any]

class StepOutline(BaseModel):
    step_id: str
    step_number: int
    title: str
    successor: str  # "decision" | "end" | "custom" | "sequential"
    next_step_id: Optional[str] = None
    branches: List[Dict[str, Any]] = []

class AdvanceRequest(BaseModel):
    state: WalkthroughState
    path_id: str = "main"

class ForkRequest(BaseModel):
    state: WalkthroughState
    path_id: str = "main"
    step_id: str

class WalkthroughResponse(BaseModel):
    state: WalkthroughState
    visible: Dict[str, List[str]]
    pending_decisions: Dict[str, str]


def walkthrough_response(navigator: WalkthroughNavigator, state: WalkthroughState) -> WalkthroughResponse:
    visible = {}
    pending = {}
    for path_id in state.paths:
        visible[path_id] = [step.id for step in navigator.visible_steps(state, path_id)]
        decision = navigator.pending_decision(state, path_id)
        if decision is not None:
            pending[path_id] = decision.id
    return WalkthroughResponse(state=state, visible=visible, pending_decisions=pending)


# ============================================================================
# GENERAL ENDPOINTS
# ============================================================================

@app.get("/")
async def root():
    return {"message": "Process Guide API"}

@app.get("/health")
async def health_check():
    return {"status": "healthy"}


# ============================================================================
# PROCESS ENDPOINTS
# ============================================================================

@app.get("/api/processes", response_model=List[Process])
async def list_processes(request: Request, search: Optional[str] = None, category: Optional[str] = None):
    """Get all processes, filtered by a title/description search and category"""
    try:
        return await guide_service(request).list_processes(search=search, category=category)
    except Exception as e:
        logger.error(f"Error listing processes: {e}")
        raise HTTPException(status_code=500, detail=str(e))

@app.post("/api/processes", response_model=ProcessGuideDetail)
async def create_process(guide: ProcessGuideCreate, request: Request):
    """Create a process with its steps and branches"""
    try:
        return await guide_service(request).create_process(guide)
    except ProcessGuideServiceError as e:
        logger.warning(f"Rejected process creation: {e}")
        raise HTTPException(status_code=409, detail=str(e))
    except Exception as e:
        logger.error(f"Error creating process: {e}")
        raise HTTPException(status_code=500, detail=str(e))

@app.get("/api/processes/{process_id}", response_model=ProcessGuideDetail)
async def get_process(process_id: str, request: Request):
    """Get a process with its steps and branches"""
    return await load_detail(request, process_id)

@app.put("/api/processes/{process_id}", response_model=ProcessGuideDetail)
async def update_process(process_id: str, guide: ProcessGuideUpdate, request: Request):
    """Update a process, replacing its steps and branches"""
    try:
        return await guide_service(request).update_process(process_id, guide)
    except ProcessNotFoundError:
        raise HTTPException(status_code=404, detail="Process not found")
    except ProcessGuideServiceError as e:
        logger.warning(f"Rejected process update: {e}")
        raise HTTPException(status_code=409, detail=str(e))
    except Exception as e:
        logger.error(f"Error updating process: {e}")
        raise HTTPException(status_code=500, detail=str(e))

@app.delete("/api/processes/{process_id}")
async def delete_process(process_id: str, request: Request):
    """Delete a process"""
    try:
        await guide_service(request).delete_process(process_id)
        return {"message": "Process deleted successfully"}
    except ProcessNotFoundError:
        raise HTTPException(status_code=404, detail="Process not found")
    except Exception as e:
        logger.error(f"Error deleting process: {e}")
        raise HTTPException(status_code=500, detail=str(e))


# ============================================================================
# TREE, FLOWCHART AND OUTLINE ENDPOINTS
# ============================================================================

@app.get("/api/processes/{process_id}/tree", response_model=ResolvedTree)
async def get_process_tree(process_id: str, request: Request):
    """Resolved navigation tree of a process"""
    detail = await load_detail(request, process_id)
    return resolve_detail(detail)

@app.get("/api/processes/{process_id}/flowchart", response_model=FlowchartResponse)
async def get_flowchart(process_id: str, request: Request):
    """Flowchart geometry plus a React Flow payload"""
    detail = await load_detail(request, process_id)
    try:
        tree = resolve_detail(detail)
        layout = layout_engine.layout(tree)
        reactflow = reactflow_translator.translate(tree, layout)
        logger.info(f"Flowchart for {process_id}: {len(layout.positions)} nodes, {len(layout.edges)} edges")
        return FlowchartResponse(process=detail.process, layout=layout, reactflow=reactflow)
    except Exception as e:
        logger.error(f"Error building flowchart: {str(e)}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"Flowchart generation failed: {str(e)}")

@app.get("/api/processes/{process_id}/outline", response_model=List[StepOutline])
async def get_outline(process_id: str, request: Request):
    """Every step with how its successor is determined"""
    detail = await load_detail(request, process_id)
    index = StepIndex(detail.steps, detail.branches)
    outline = []
    for step in index.steps:
        info = index.describe_successor(step)
        outline.append(StepOutline(
            step_id=step.id,
            step_number=step.step_number,
            title=step.title,
            successor=info.kind.value,
            next_step_id=info.next_step.id if info.next_step else None,
            branches=[b.model_dump(by_alias=True) for b in info.branches],
        ))
    return outline


# ============================================================================
# WALKTHROUGH ENDPOINTS
# ============================================================================

@app.post("/api/processes/{process_id}/walkthrough", response_model=WalkthroughResponse)
async def start_walkthrough(process_id: str, request: Request):
    """Fresh walkthrough state with the first step revealed"""
    detail = await load_detail(request, process_id)
    navigator = WalkthroughNavigator(detail.steps, detail.branches)
    return walkthrough_response(navigator, navigator.start())

@app.post("/api/processes/{process_id}/walkthrough/advance", response_model=WalkthroughResponse)
async def advance_walkthrough(process_id: str, body: AdvanceRequest, request: Request):
    detail = await load_detail(request, process_id)
    navigator = WalkthroughNavigator(detail.steps, detail.branches)
    try:
        state = navigator.advance(body.state, body.path_id)
    except WalkthroughError as e:
        raise HTTPException(status_code=409, detail=str(e))
    return walkthrough_response(navigator, state)

@app.post("/api/processes/{process_id}/walkthrough/fork", response_model=WalkthroughResponse)
async def fork_walkthrough(process_id: str, body: ForkRequest, request: Request):
    detail = await load_detail(request, process_id)
    navigator = WalkthroughNavigator(detail.steps, detail.branches)
    try:
        state = navigator.fork(body.state, body.path_id, body.step_id)
    except WalkthroughError as e:
        raise HTTPException(status_code=409, detail=str(e))
    return walkthrough_response(navigator, state)

@app.post("/api/processes/{process_id}/walkthrough/reset", response_model=WalkthroughResponse)
async def reset_walkthrough(process_id: str, body: AdvanceRequest, request: Request):
    detail = await load_detail(request, process_id)
    navigator = WalkthroughNavigator(detail.steps, detail.branches)
    return walkthrough_response(navigator, navigator.reset(body.state))


# ============================================================================
# DATABASE MANAGEMENT ENDPOINTS
# ============================================================================

@app.get("/api/database/export", response_model=DatabaseExport)
async def export_database(request: Request):
    """Download all data as a JSON backup"""
    try:
        return await guide_service(request).export_database()
    except Exception as e:
        logger.error(f"Error exporting database: {e}")
        raise HTTPException(status_code=500, detail=str(e))

@app.post("/api/database/import", response_model=DatabaseStats)
async def import_database(data: DatabaseExport, request: Request):
    """Restore all data from a JSON backup"""
    try:
        return await guide_service(request).import_database(data)
    except ProcessGuideServiceError as e:
        logger.warning(f"Rejected database import: {e}")
        raise HTTPException(status_code=409, detail=str(e))
    except Exception as e:
        logger.error(f"Error importing database: {e}")
        raise HTTPException(status_code=500, detail=str(e))

@app.get("/api/database/stats", response_model=DatabaseStats)
async def get_database_stats(request: Request):
    return await guide_service(request).get_stats()

@app.post("/api/database/seed")
async def seed_database(request: Request):
    """Insert the bundled sample guides"""
    try:
        seeded = await guide_service(request).seed_samples()
        return {"seeded": seeded}
    except Exception as e:
        logger.error(f"Error seeding sample guides: {e}")
        raise HTTPException(status_code=500, detail=str(e))


if __name__ == "__main__":
    import uvicorn
    port = int(os.getenv("PORT", 8000))
    uvicorn.run(app, host="0.0.0.0", port=port)
