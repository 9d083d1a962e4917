"""FastAPI application entry point."""
import logging
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from changetrack.api import auth, applications, change_requests, my_applications, stats
from changetrack.core.config import settings
from changetrack.core.errors import ChangeTrackError

logging.basicConfig(level=settings.LOG_LEVEL)

app = FastAPI(title="Change Validation Tracker", version="1.0.0")

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.get_cors_origins(),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(ChangeTrackError)
async def change_track_error_handler(request: Request, exc: ChangeTrackError):
    """Translate core errors into JSON responses."""
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.message}
    )


# Routes
app.include_router(auth.router, prefix="/auth", tags=["auth"])
# Application catalog (admin managed)
app.include_router(applications.router)
# Change requests and validation updates
app.include_router(change_requests.router)
# Application owner queue
app.include_router(my_applications.router)
# Dashboard stats and analytics
app.include_router(stats.router)


@app.get("/")
def read_root():
    return {"message": "Change Validation Tracker API"}
