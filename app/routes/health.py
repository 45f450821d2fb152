from fastapi import APIRouter, Request

router = APIRouter()


@router.get("/")
async def health(request: Request):
    sessions = request.app.state.sessions
    return {
        "status": "ok",
        "message": "ENEM study planner backend is running",
        "store_ready": sessions.store is not None,
        "sessions": len(sessions),
    }
