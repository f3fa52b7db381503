from fastapi import APIRouter, Request

router = APIRouter()


@router.get("/health")
def health():
    return {"status": "ok"}


@router.get("/ready")
def ready(request: Request):
    engine = getattr(request.app.state, "valuation_engine", None)
    scheduler = getattr(request.app.state, "poll_scheduler", None)
    return {
        "status": "ready" if engine is not None else "not_ready",
        "scheduler_running": bool(scheduler and scheduler.running),
        "open_sessions": engine.session_count() if engine is not None else 0,
    }
