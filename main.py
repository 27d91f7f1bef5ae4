import logging
import re
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import List, Optional

from fastapi import APIRouter, Depends, FastAPI, Request
from fastapi.responses import PlainTextResponse

from config import Settings
from database import StudentStore, connect
from errors import StorageError, register_error_handlers
from logging_config import setup_logging
from schemas import YEAR_MAX, YEAR_MIN, Message, StudentCreate, StudentOut, StudentPatch, StudentUpdate

logger = logging.getLogger(__name__)

YEAR_PATTERN = re.compile(r"-?[0-9]+")


def get_store(request: Request) -> StudentStore:
    store = request.app.state.store
    if store is None:
        raise StorageError("Database connection is not initialised")
    return store


router = APIRouter(prefix="/api/v1/students", tags=["Students"])


@router.post("", response_model=StudentOut, status_code=201)
def create_student(payload: StudentCreate, store: StudentStore = Depends(get_store)):
    return store.create(payload.model_dump())


@router.get("", response_model=List[StudentOut])
def list_students(store: StudentStore = Depends(get_store)):
    return store.find_many()


@router.get("/course/{course}", response_model=List[StudentOut])
def list_by_course(course: str, store: StudentStore = Depends(get_store)):
    return store.find_many({"course": course})


@router.get("/section/{section}", response_model=List[StudentOut])
def list_by_section(section: str, store: StudentStore = Depends(get_store)):
    return store.find_many({"section": section})


@router.get("/year/{year}", response_model=List[StudentOut])
def list_by_year(year: str, store: StudentStore = Depends(get_store)):
    # year is stored as a 64-bit integer; anything else cannot match
    if not YEAR_PATTERN.fullmatch(year):
        return []
    value = int(year)
    if not YEAR_MIN <= value <= YEAR_MAX:
        return []
    return store.find_many({"year": value})


@router.get("/email/{email}", response_model=StudentOut)
def get_by_email(email: str, store: StudentStore = Depends(get_store)):
    return store.find_one({"email": email})


@router.get("/studentNo/{student_no}", response_model=StudentOut)
def get_by_student_no(student_no: str, store: StudentStore = Depends(get_store)):
    return store.find_one({"studentNo": student_no})


@router.get("/{student_id}", response_model=StudentOut)
def get_student(student_id: str, store: StudentStore = Depends(get_store)):
    return store.get(student_id)


@router.put("/{student_id}", response_model=StudentOut)
def update_student(student_id: str, payload: StudentUpdate, store: StudentStore = Depends(get_store)):
    return store.replace(student_id, payload.model_dump())


@router.patch("/{student_id}", response_model=StudentOut)
def patch_student(student_id: str, payload: StudentPatch, store: StudentStore = Depends(get_store)):
    return store.patch(student_id, payload.model_dump(exclude_unset=True))


@router.delete("/{student_id}", response_model=Message)
def delete_student(student_id: str, store: StudentStore = Depends(get_store)):
    store.delete(student_id)
    return {"message": "Student deleted"}


def create_app(store: Optional[StudentStore] = None, settings: Optional[Settings] = None) -> FastAPI:
    """Build the API. Without an explicit ``store`` the app connects to
    MongoDB on startup and refuses to serve if that fails."""
    settings = settings or Settings.from_env()
    setup_logging(settings.log_level)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        owned = app.state.store is None
        if owned:
            app.state.store = connect(settings)
        yield
        if owned:
            app.state.store.close()
            app.state.store = None

    app = FastAPI(title="Student CRUD API", lifespan=lifespan)
    app.state.store = store
    app.state.settings = settings
    register_error_handlers(app)

    @app.get("/", response_class=PlainTextResponse)
    def read_root():
        return "✅ Student CRUD API is running!"

    @app.get("/health")
    def health(request: Request):
        current = request.app.state.store
        return {
            "status": "ok",
            "database": "connected" if current is not None and current.ping() else "unavailable",
            "time": datetime.now(timezone.utc).isoformat(),
        }

    app.include_router(router)
    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host=app.state.settings.host, port=app.state.settings.port)
