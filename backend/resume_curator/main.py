import logging
import os

from dotenv import load_dotenv
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

load_dotenv()

# db reads DATABASE_URL at import time, after .env is loaded
from . import db
from . import models  # noqa: F401  (registers tables on Base)
from .errors import CuratorError

logging.basicConfig(
    level=(os.getenv("LOG_LEVEL") or "INFO").upper(),
    format="%(asctime)s %(levelname)s %(name)s %(message)s",
)
logger = logging.getLogger(__name__)

app = FastAPI(title="Resume Curator Backend")

origins_env = os.getenv("CORS_ORIGINS")
origins = [o.strip() for o in (origins_env or "").split(",") if o.strip()]
if not origins:
    # Sensible default for local dev (Next.js 3000, Vite 5173)
    origins = ["http://localhost:3000", "http://localhost:5173"]
app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

db.Base.metadata.create_all(bind=db.engine)


@app.exception_handler(CuratorError)
async def curator_error_handler(request: Request, exc: CuratorError):
    logger.warning("%s %s failed: %s", request.method, request.url.path, exc.message)
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.get("/health")
def health():
    return {"ok": True}

from .api.routes_ai import router as ai_router
from .api.routes_conversations import router as conversations_router
app.include_router(ai_router)
app.include_router(conversations_router)


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host=os.getenv("HOST", "127.0.0.1"), port=int(os.getenv("PORT", "8000")))
