import asyncio
import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware

import crud
from config import get_settings
from database import AsyncSessionLocal, create_tables
from dependencies import limiter
from exceptions import DomainError
from routers import (
    attendance,
    auth,
    dashboard,
    employees,
    holidays,
    leaves,
    notifications,
    org,
    payroll,
    realtime,
    team,
    timesheets,
)
from services import dispatcher
from services.overtime import overtime_sweep_loop

settings = get_settings()

logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

app = FastAPI(title="HRMS API")
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)
app.add_middleware(SlowAPIMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=settings.cors_origins != ["*"],
    allow_methods=["*"],
    allow_headers=["*"],
)


def jsonable_errors(errors):
    return [{"loc": list(e.get("loc", ())), "msg": e.get("msg", "")} for e in errors]


@app.exception_handler(DomainError)
async def domain_error_handler(request: Request, exc: DomainError):
    return JSONResponse(status_code=exc.status_code, content={"message": exc.message})


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    errors = exc.errors()
    message = errors[0].get("msg", "Invalid request") if errors else "Invalid request"
    return JSONResponse(status_code=400, content={"message": message, "errors": jsonable_errors(errors)})


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(status_code=500, content={"message": "Server Error"})


API_ROUTERS = (auth, attendance, timesheets, leaves, notifications, employees, org, team, dashboard, holidays, payroll)

for module in API_ROUTERS:
    app.include_router(module.router, prefix="/api")
app.include_router(realtime.router)


@app.on_event("startup")
async def startup():
    await create_tables()
    async with AsyncSessionLocal() as db:
        seeded = await crud.seed_leave_types(db, settings.default_leave_types)
    if seeded:
        logger.info("Seeded %d leave type(s)", seeded)
    if settings.enable_overtime_sweep:
        app.state.sweep_task = asyncio.create_task(overtime_sweep_loop(AsyncSessionLocal, dispatcher, settings))


@app.on_event("shutdown")
async def shutdown():
    task = getattr(app.state, "sweep_task", None)
    if task is not None:
        task.cancel()


@app.get("/health")
async def health():
    return {"status": "ok"}


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("main:app", host="0.0.0.0", port=8000, reload=False)
