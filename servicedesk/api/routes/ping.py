from fastapi import APIRouter, HTTPException, Request

router = APIRouter(prefix="/ping", tags=["health"])


@router.get("", summary="Public health probe")
async def ping() -> dict[str, str]:
    return {"status": "ok"}


@router.get("/ready", summary="Readiness probe covering the database")
async def ready(request: Request) -> dict[str, str]:
    tester = getattr(request.app.state, "postgres_tester", None)
    if tester is None:
        return {"status": "ok", "database": "skipped"}
    if not await tester.is_ready():
        raise HTTPException(status_code=503, detail="Database is not reachable")
    return {"status": "ok", "database": "ok"}
