from typing import Optional

from fastapi import APIRouter, HTTPException, Request, status

from app.schemas.studyplan import PreferencesRequest, SessionRequest, ViewState
from app.services.controller import StudyController
from app.services.identity import BootstrapError
from app.services.sessions import SessionRegistry
from app.utils.logger import logger

router = APIRouter()


def get_registry(request: Request) -> SessionRegistry:
    return request.app.state.sessions


def get_controller(request: Request, user_id: str) -> StudyController:
    controller = get_registry(request).get(user_id)
    if controller is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Session not found")
    return controller


# -------------------------------------------------------------------
# Session
# -------------------------------------------------------------------
@router.post("/session", response_model=ViewState)
async def open_session(request: Request, payload: Optional[SessionRequest] = None):
    token = payload.token if payload else None

    try:
        controller = await get_registry(request).open(token=token)
    except BootstrapError as e:
        logger.error(f"[SESSION] Bootstrap failed: {e}")
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(e))

    return controller.view()


@router.get("/session/{user_id}", response_model=ViewState)
async def get_session(request: Request, user_id: str):
    return get_controller(request, user_id).view()


# -------------------------------------------------------------------
# Form
# -------------------------------------------------------------------
@router.put("/session/{user_id}/preferences", response_model=ViewState)
async def update_preferences(request: Request, user_id: str, payload: PreferencesRequest):
    controller = get_controller(request, user_id)
    controller.set_preferences(payload.hours, payload.difficulties)
    return controller.view()


@router.post("/session/{user_id}/form", response_model=ViewState)
async def show_form(request: Request, user_id: str):
    controller = get_controller(request, user_id)
    controller.show_form()
    return controller.view()


# -------------------------------------------------------------------
# Plan actions
# -------------------------------------------------------------------
@router.post("/session/{user_id}/plan", response_model=ViewState)
async def generate_plan(request: Request, user_id: str):
    controller = get_controller(request, user_id)
    logger.info(f"[STUDYPLAN] Generate plan: user={user_id} week={controller.week}")
    await controller.generate_plan()
    return controller.view()


@router.post("/session/{user_id}/days/{day}/done", response_model=ViewState)
async def mark_day_done(request: Request, user_id: str, day: str):
    controller = get_controller(request, user_id)

    try:
        await controller.mark_day_done(day)
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e))

    return controller.view()


@router.post("/session/{user_id}/seminar", response_model=ViewState)
async def generate_seminar(request: Request, user_id: str):
    controller = get_controller(request, user_id)
    await controller.generate_seminar()
    return controller.view()


# -------------------------------------------------------------------
# Navigation
# -------------------------------------------------------------------
@router.post("/session/{user_id}/week/next", response_model=ViewState)
async def next_week(request: Request, user_id: str):
    controller = get_controller(request, user_id)
    await controller.next_week()
    return controller.view()


@router.post("/session/{user_id}/week/previous", response_model=ViewState)
async def previous_week(request: Request, user_id: str):
    controller = get_controller(request, user_id)
    await controller.previous_week()
    return controller.view()


@router.post("/session/{user_id}/restart", response_model=ViewState)
async def restart(request: Request, user_id: str):
    controller = get_controller(request, user_id)
    await controller.restart()
    return controller.view()
