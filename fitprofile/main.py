import logging

from fastapi import FastAPI, status
from fastapi.middleware.cors import CORSMiddleware

from fitprofile import supabase_client
from fitprofile.config import settings
from fitprofile.routers import auth, profile, progress, progress_photos
from fitprofile.utils.response import create_response, handle_exception

logging.basicConfig(
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    level=settings.LOG_LEVEL,
)
logger = logging.getLogger(__name__)

app = FastAPI(title=settings.PROJECT_NAME)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# Shared anon client for token checks; user requests get their own client
@app.on_event("startup")
async def startup_event():
    app.state.supabase = await supabase_client.create_supabase_client()


@app.on_event("shutdown")
async def shutdown_event():
    await supabase_client.close_supabase_client(app.state.supabase)


app.include_router(auth.router)
app.include_router(profile.router)
app.include_router(progress.router)
app.include_router(progress_photos.router)


@app.get("/")
def home():
    try:
        return create_response(
            message="Fitness profile API running",
            data={"service": "fitprofile"},
            status_code=status.HTTP_200_OK
        )
    except Exception as exc:
        return handle_exception(exc)
