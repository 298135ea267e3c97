import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from .config import get_settings
from .api import api_router
from .services.assignment_repository import AssignmentRepository
from .services.persistence import InMemoryAssignmentStore, SqlAssignmentStore
from .services.planning import PlanningService
from .services.providers import StaticRosterProvider, StaticJobProvider

settings = get_settings()

logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup: выбираем хранилище и поднимаем кэш назначений
    engine = None
    if settings.persistence_backend == "sql":
        from .database import engine, async_session
        from .models import Base
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        store = SqlAssignmentStore(async_session)
    else:
        store = InMemoryAssignmentStore()

    repository = AssignmentRepository(store, settings)
    await repository.load()

    app.state.roster = StaticRosterProvider()
    app.state.jobs = StaticJobProvider()
    app.state.repository = repository
    app.state.planning_service = PlanningService(repository, app.state.roster, app.state.jobs, settings)
    logger.info(f"{settings.app_name} started with {settings.persistence_backend} persistence")

    yield

    # Shutdown
    if engine is not None:
        await engine.dispose()


app = FastAPI(
    title=settings.app_name,
    version="1.0.0",
    lifespan=lifespan
)

# CORS
origins = [origin.strip() for origin in settings.cors_origins.split(",")]
app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include API routes
app.include_router(api_router, prefix="/api")


@app.get("/health")
async def health_check():
    return {"status": "healthy", "app": settings.app_name}
