from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi import Request
from fastapi.responses import JSONResponse
from fastapi.middleware.cors import CORSMiddleware
from dupcheck.api.routes import router
from dupcheck.api.admin_routes import router as admin_router
from dupcheck.core.profiles import UnknownProfileError, profile_names
from dupcheck.core.registry import registry
from dupcheck.core.session import UnknownFieldError
from dupcheck.settings import settings


@asynccontextmanager
async def lifespan(app: FastAPI):
    yield
    # Timers and in-flight lookups die with the loop; leave a final snapshot behind.
    await registry.aclose()


app = FastAPI(title="Duplicate Check Session API", lifespan=lifespan)

origins = [x.strip() for x in settings.CORS_ORIGINS.split(",") if x.strip()]
app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(router)
app.include_router(admin_router)


@app.get("/health")
def health():
    return {"status": "ok", "profiles": list(profile_names())}


@app.exception_handler(UnknownProfileError)
async def unknown_profile_handler(request: Request, exc: UnknownProfileError):
    return JSONResponse(status_code=422, content={"detail": str(exc)})


@app.exception_handler(UnknownFieldError)
async def unknown_field_handler(request: Request, exc: UnknownFieldError):
    return JSONResponse(status_code=422, content={"detail": str(exc)})
