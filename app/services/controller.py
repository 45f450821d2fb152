import asyncio
import random
from contextlib import contextmanager
from datetime import date
from enum import Enum
from typing import Callable, Dict, Optional

from fastapi.concurrency import run_in_threadpool
from pydantic import ValidationError

from app.config import AppConfig
from app.schemas.plan import StudyPlan
from app.schemas.studyplan import ViewState
from app.services import llm_study
from app.services.catalog import (
    DAYS_OF_WEEK,
    DEFAULT_HOURS,
    HOURS_MAX,
    HOURS_MIN,
    SUBJECTS,
    check_difficulties,
    day_name_for,
    default_difficulties,
    normalize_day_name,
)
from app.services.gemini_client import GeminiClient, GenerationError
from app.services.identity import Session
from app.services.plan_store import StoreError, key_for
from app.utils.dates import is_seminar_day, weeks_until
from app.utils.logger import logger


class Mode(str, Enum):
    BOOTSTRAPPING = "bootstrapping"
    FORM_VISIBLE = "form"
    PLAN_VISIBLE = "plan"
    SEMINAR_VISIBLE = "seminar"


# User-facing messages
MSG_LOAD_ERROR = "Erro ao carregar o plano de estudo. Por favor, tente novamente."
MSG_GENERATING_PLAN = "Gerando sua rotina de estudos detalhada..."
MSG_PLAN_SAVED = "Plano de estudo gerado e salvo com sucesso!"
MSG_PLAN_FALLBACK = "Erro ao gerar plano detalhado. Gerando um plano básico."
MSG_PLAN_SAVE_ERROR = "Erro ao salvar o plano de estudo. Tente novamente."
MSG_NO_PLAN = "Nenhum plano carregado para esta semana."
MSG_MARK_ERROR = "Erro ao marcar como concluído. Tente novamente."
MSG_WEEK_INCOMPLETE = "A semana não foi concluída. Marque todos os dias como feitos para gerar o seminário."
MSG_GENERATING_SEMINAR = "Gerando o tema detalhado do seu seminário semanal..."
MSG_SEMINAR_ERROR = "Erro ao gerar o tema do seminário. Verifique sua conexão e tente novamente."
MSG_SEMINAR_SAVED = "Seminário gerado com sucesso!"
MSG_SEMINAR_SAVE_ERROR = "Erro ao salvar o seminário. Tente novamente."
MSG_FIRST_WEEK = "Você já está na semana 1."
MSG_RESTARTED = "Progresso da semana 1 reiniciado!"
MSG_RESTART_ERROR = "Erro ao reiniciar o progresso."


class StudyController:
    """
    Application controller for one user session.

    Holds a single tagged mode plus a transient message. Store calls run in
    the threadpool, generation calls are awaited directly. Every navigation
    bumps an epoch counter; a generation remembers the epoch and week it was
    started for and its answer is dropped once either has moved on.
    """

    def __init__(
        self,
        session: Session,
        client: GeminiClient,
        config: AppConfig,
        *,
        today: Callable[[], date] = date.today,
        rng: Optional[random.Random] = None,
        sleep=asyncio.sleep,
    ):
        self.session = session
        self.client = client
        self.config = config
        self._today = today
        self._rng = rng
        self._sleep = sleep

        self.mode = Mode.BOOTSTRAPPING
        self.message = ""
        self.week = 1
        self.hours = DEFAULT_HOURS
        self.difficulties: Dict[str, int] = default_difficulties()
        self.plan: Optional[StudyPlan] = None
        self._inflight = 0
        self._epoch = 0

    # ---------------------------------------------------------------
    # Helpers
    # ---------------------------------------------------------------
    @property
    def busy(self) -> bool:
        return self._inflight > 0

    @contextmanager
    def _working(self):
        self._inflight += 1
        try:
            yield
        finally:
            self._inflight -= 1

    def _key(self, week: int):
        return key_for(self.session.user_id, week)

    async def _read(self, week: int) -> Optional[dict]:
        return await run_in_threadpool(self.session.store.read, self._key(week))

    async def _write_full(self, week: int, document: dict) -> None:
        await run_in_threadpool(self.session.store.write_full, self._key(week), document)

    async def _write_merge(self, week: int, fields: dict) -> None:
        await run_in_threadpool(self.session.store.write_merge, self._key(week), fields)

    def _is_stale(self, epoch: int, week: int, plan: Optional[StudyPlan] = None) -> bool:
        if epoch == self._epoch and week == self.week and (plan is None or plan is self.plan):
            return False
        logger.warning(f"[CONTROLLER] Dropping result for week {week}, active week is {self.week}")
        return True

    def _move_to(self, week: int) -> None:
        self._epoch += 1
        self.week = week
        self.plan = None
        self.message = ""
        self.mode = Mode.FORM_VISIBLE

    @property
    def completed_days(self):
        if not self.plan:
            return []
        return self.plan.completed_days

    @property
    def week_complete(self) -> bool:
        done = {day for day in self.completed_days if day in DAYS_OF_WEEK}
        return len(done) >= len(DAYS_OF_WEEK)

    # ---------------------------------------------------------------
    # Loading
    # ---------------------------------------------------------------
    async def load(self) -> None:
        """
        Load the active week's plan, generating one when none is stored.
        """
        epoch, week = self._epoch, self.week
        logger.info(f"[CONTROLLER] Loading week {week} for {self.session.user_id}")

        with self._working():
            try:
                document = await self._read(week)
            except StoreError:
                self.message = MSG_LOAD_ERROR
                if self.plan is None:
                    self.mode = Mode.FORM_VISIBLE
                return

        if self._is_stale(epoch, week):
            return

        if document is None:
            self.plan = None
            self.mode = Mode.FORM_VISIBLE
            if self.config.auto_generate:
                await self.generate_plan()
            return

        try:
            plan = StudyPlan.from_document(document)
        except ValidationError as e:
            logger.error(f"[CONTROLLER] Stored plan for week {week} is invalid: {e}")
            self.plan = None
            self.message = MSG_LOAD_ERROR
            self.mode = Mode.FORM_VISIBLE
            return

        self.plan = plan
        self.hours = plan.hours
        self.difficulties = dict(plan.difficulties)
        self.mode = Mode.PLAN_VISIBLE

        if is_seminar_day(self._today()):
            if plan.seminar:
                self.mode = Mode.SEMINAR_VISIBLE
            elif self.week_complete:
                await self.generate_seminar()

    # ---------------------------------------------------------------
    # Form
    # ---------------------------------------------------------------
    def set_preferences(self, hours: int, difficulties: Dict[str, int]) -> None:
        if isinstance(hours, bool) or not isinstance(hours, int) or not HOURS_MIN <= hours <= HOURS_MAX:
            raise ValueError(f"hours must be an integer between {HOURS_MIN} and {HOURS_MAX}")

        self.difficulties = check_difficulties(difficulties)
        self.hours = hours
        self.mode = Mode.FORM_VISIBLE

    def show_form(self) -> None:
        self.mode = Mode.FORM_VISIBLE

    # ---------------------------------------------------------------
    # Actions
    # ---------------------------------------------------------------
    async def generate_plan(self) -> None:
        epoch, week = self._epoch, self.week
        hours = self.hours
        difficulties = dict(self.difficulties)
        self.message = MSG_GENERATING_PLAN

        with self._working():
            result = await llm_study.generate_weekly_plan(
                self.client,
                hours,
                difficulties,
                rng=self._rng,
                sleep=self._sleep,
            )

            if self._is_stale(epoch, week):
                return

            plan = StudyPlan(
                hours=hours,
                difficulties=difficulties,
                plan=result.plan,
                completed_days=[],
                week=week,
            )

            # Shown even if saving fails below
            self.plan = plan
            self.mode = Mode.PLAN_VISIBLE
            self.message = MSG_PLAN_SAVED if result.succeeded else MSG_PLAN_FALLBACK

            try:
                await self._write_full(week, plan.to_document())
            except StoreError:
                self.message = MSG_PLAN_SAVE_ERROR

    async def mark_day_done(self, day: str) -> None:
        if self.plan is None:
            self.message = MSG_NO_PLAN
            return

        canonical = normalize_day_name(day)
        if canonical not in DAYS_OF_WEEK:
            raise ValueError(f"Unknown study day: {day}")

        if canonical in self.plan.completed_days:
            self.message = f"{canonical} já estava marcado como concluído."
            return

        week = self.week
        completed = list(self.plan.completed_days) + [canonical]
        self.plan.completed_days = completed
        self.message = f"{canonical} marcado como concluído!"

        with self._working():
            try:
                await self._write_merge(week, {"completedDays": completed})
            except StoreError:
                self.message = MSG_MARK_ERROR

    async def generate_seminar(self) -> bool:
        if self.plan is None or not self.week_complete:
            self.message = MSG_WEEK_INCOMPLETE
            return False

        epoch, week, plan = self._epoch, self.week, self.plan
        self.message = MSG_GENERATING_SEMINAR

        with self._working():
            try:
                seminar = await llm_study.generate_seminar(
                    self.client,
                    plan.difficulties,
                    sleep=self._sleep,
                )
            except GenerationError:
                if not self._is_stale(epoch, week, plan):
                    self.message = MSG_SEMINAR_ERROR
                return False

            if self._is_stale(epoch, week, plan):
                return False

            plan.seminar = seminar
            self.mode = Mode.SEMINAR_VISIBLE
            self.message = MSG_SEMINAR_SAVED

            try:
                await self._write_merge(week, {"seminar": seminar.model_dump(by_alias=True)})
            except StoreError:
                self.message = MSG_SEMINAR_SAVE_ERROR

        return True

    async def next_week(self) -> None:
        self._move_to(self.week + 1)
        await self.load()

    async def previous_week(self) -> None:
        if self.week <= 1:
            self.message = MSG_FIRST_WEEK
            return
        self._move_to(self.week - 1)
        await self.load()

    async def restart(self) -> None:
        self._move_to(1)

        with self._working():
            try:
                document = await self._read(1)
                if document is not None:
                    await self._write_merge(1, {"completedDays": []})
                    self.message = MSG_RESTARTED
            except StoreError:
                self.message = MSG_RESTART_ERROR
                self.mode = Mode.FORM_VISIBLE
                return

        await self.load()

    # ---------------------------------------------------------------
    # View
    # ---------------------------------------------------------------
    def view(self) -> ViewState:
        today = self._today()
        return ViewState(
            mode=self.mode.value,
            message=self.message,
            busy=self.busy,
            user_id=self.session.user_id,
            week=self.week,
            weeks_until_exam=weeks_until(self.config.exam_date, today),
            is_seminar_day=is_seminar_day(today),
            today=day_name_for(today),
            hours=self.hours,
            difficulties=dict(self.difficulties),
            subjects=list(SUBJECTS),
            days=list(DAYS_OF_WEEK),
            plan=self.plan,
            completed_count=len(set(self.completed_days)),
            week_complete=self.week_complete,
        )
