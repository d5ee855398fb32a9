from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException
import socketio

from app.core.config import settings
from app.core.logging import configure_logging
from app.core.scheduler import start_scheduler, stop_scheduler
from app.endpoints import account, admin, analytics, attempt, auth, exam, grading, proctoring, question
from app.middleware.exceptions import global_exception_handler, http_exception_handler, validation_exception_handler
from app.middleware.logging import RequestLoggingMiddleware
from app.realtime import websockets as websocket_events
from app.realtime.websockets import sio

configure_logging()

app = FastAPI(
    title=settings.PROJECT_NAME,
    version=settings.VERSION,
    openapi_url=f"{settings.API_V1_STR}/openapi.json"
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
    allow_headers=["*"],
)

app.add_middleware(GZipMiddleware, minimum_size=1000)
app.add_middleware(RequestLoggingMiddleware)

app.mount("/socket.io", socketio.ASGIApp(sio))

app.add_exception_handler(Exception, global_exception_handler)
app.add_exception_handler(StarletteHTTPException, http_exception_handler)
app.add_exception_handler(RequestValidationError, validation_exception_handler)

app.include_router(auth.router, prefix="/auth", tags=["Auth"])
app.include_router(account.router, prefix="/account", tags=["Account"])
app.include_router(admin.router, prefix="/admin", tags=["Admin"])
app.include_router(question.router, prefix="/questions", tags=["Questions"])
app.include_router(exam.router, prefix="/exams", tags=["Exams"])
app.include_router(attempt.router, tags=["Exam Attempts"])
app.include_router(grading.router, prefix="/grading", tags=["Grading"])
app.include_router(proctoring.router, prefix="/proctoring", tags=["Proctoring"])
app.include_router(analytics.router, prefix="/analytics", tags=["Analytics"])

@app.get("/health", tags=["Health"])
async def health_check():
    return {"status": "ok", "version": settings.VERSION}

@app.on_event("startup")
async def startup_event():
    websocket_events.register_websocket_events(sio)
    start_scheduler()

@app.on_event("shutdown")
async def shutdown_event():
    stop_scheduler()

if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
