import asyncio
import json
import random
from typing import Any, Awaitable, Callable, Dict, List, Optional

from pydantic import BaseModel

from app.schemas.plan import (
    SEMINAR_SCHEMA,
    WEEKLY_PLAN_SCHEMA,
    DaySubjectBlock,
    Seminar,
)
from app.services.catalog import (
    DAYS_OF_WEEK,
    SAMPLE_TOPICS,
    SEMINAR_DIFFICULTY_THRESHOLD,
    normalize_day_name,
)
from app.services.gemini_client import GeminiClient, GenerationError, call_with_retry
from app.utils.logger import logger

Sleep = Callable[[float], Awaitable[Any]]

PlanMapping = Dict[str, List[DaySubjectBlock]]


class PlanGenerationResult(BaseModel):
    plan: PlanMapping
    # False when the local fallback plan was used
    succeeded: bool


# -------------------------------------------------------------------
# Prompt builders
# -------------------------------------------------------------------
def build_weekly_plan_prompt(hours_per_day: int, difficulties: Dict[str, int]) -> str:
    return (
        "Crie um plano de estudos semanal para o ENEM (de segunda a sábado) para um aluno "
        f"do 2º ano do ensino médio. O aluno tem {hours_per_day} horas para estudar por dia. "
        "As dificuldades dele nas matérias (1-5, onde 5 é mais difícil) são: "
        f"{json.dumps(difficulties, ensure_ascii=False)}. "
        "O plano deve conter para cada dia: o dia da semana, uma ou duas matérias, e para cada "
        "matéria, um tópico principal e 2-3 sub-tópicos específicos. Além disso, inclua uma breve "
        "descrição ou objetivo para cada dia de estudo. Use dados abertos e amplamente disponíveis "
        "sobre o ENEM. A resposta deve ser um JSON válido no formato do schema abaixo."
    )


def difficult_subjects(difficulties: Dict[str, int]) -> List[str]:
    return [
        subject
        for subject, level in difficulties.items()
        if level >= SEMINAR_DIFFICULTY_THRESHOLD
    ]


def build_seminar_prompt(subjects: List[str]) -> str:
    return (
        "Você é um tutor de estudos para o ENEM. Um aluno do 2º ano do ensino médio tem "
        f"dificuldades com as seguintes matérias: {', '.join(subjects)}. Baseado nisso, sugira "
        'um tema detalhado para um "seminário de sábado" que foque em um desses tópicos. '
        "Forneça o plano do seminário como um objeto JSON. Inclua um título, um tópico principal, "
        "2 a 3 sub-tópicos com uma breve descrição para cada, e uma analogia simples para ajudar "
        "na compreensão. Use dados abertos e amplamente disponíveis sobre o ENEM."
    )


# -------------------------------------------------------------------
# Response parsing
# -------------------------------------------------------------------
def placeholder_block() -> DaySubjectBlock:
    return DaySubjectBlock(
        subject="Matéria Exemplo",
        main_topic="Revisão livre",
        sub_topics=["Tópico 1", "Tópico 2"],
        description="Dia sem conteúdo gerado. Revise os temas da semana.",
    )


def parse_weekly_plan(data: Any) -> PlanMapping:
    """
    Re-key a {"weeklyPlan": [{day, schedule}, ...]} answer by canonical day.

    Day labels are normalized, unknown days are dropped and any canonical day
    left without blocks gets a single placeholder block. Raises
    GenerationError (or pydantic.ValidationError) when the shape is unusable.
    """
    if not isinstance(data, dict) or not isinstance(data.get("weeklyPlan"), list):
        raise GenerationError("Answer has no 'weeklyPlan' array")

    plan: PlanMapping = {}
    for entry in data["weeklyPlan"]:
        if not isinstance(entry, dict) or not isinstance(entry.get("schedule"), list):
            raise GenerationError(f"Invalid weeklyPlan entry: {entry!r}")

        day = normalize_day_name(str(entry.get("day", "")))
        if day not in DAYS_OF_WEEK:
            logger.warning(f"[LLM_STUDY] Ignoring unknown day label '{entry.get('day')}'")
            continue

        blocks = [DaySubjectBlock.model_validate(item) for item in entry["schedule"]]
        plan.setdefault(day, []).extend(blocks)

    if not plan:
        raise GenerationError("Answer has no recognizable study day")

    for day in DAYS_OF_WEEK:
        if not plan.get(day):
            logger.warning(f"[LLM_STUDY] Day '{day}' missing from answer, using placeholder")
            plan[day] = [placeholder_block()]

    return {day: plan[day] for day in DAYS_OF_WEEK}


# -------------------------------------------------------------------
# Local fallback
# -------------------------------------------------------------------
def fallback_plan(difficulties: Dict[str, int], rng: Optional[random.Random] = None) -> PlanMapping:
    """
    Basic plan used when the API keeps failing: every day studies one of the
    hardest subjects (random among ties) with a random sample topic.
    """
    rng = rng or random.Random()
    hardest = max(difficulties.values())
    candidates = [s for s, level in difficulties.items() if level == hardest]

    plan: PlanMapping = {}
    for day in DAYS_OF_WEEK:
        subject = rng.choice(candidates)
        topic = rng.choice(SAMPLE_TOPICS[subject])
        plan[day] = [
            DaySubjectBlock(
                subject=subject,
                main_topic=topic,
                sub_topics=["Sub-tópico 1", "Sub-tópico 2"],
                description="Revisão geral do tema",
            )
        ]
    return plan


# -------------------------------------------------------------------
# Public API
# -------------------------------------------------------------------
async def generate_weekly_plan(
    client: GeminiClient,
    hours_per_day: int,
    difficulties: Dict[str, int],
    *,
    rng: Optional[random.Random] = None,
    sleep: Sleep = asyncio.sleep,
) -> PlanGenerationResult:
    """
    Ask the generative API for a Monday..Saturday plan.
    Falls back to a locally synthesized plan once all attempts fail.
    """
    logger.info(f"[LLM_STUDY] Generating weekly plan: hours={hours_per_day} difficulties={difficulties}")
    prompt = build_weekly_plan_prompt(hours_per_day, difficulties)

    async def attempt() -> PlanMapping:
        data = await client.generate_json(prompt, WEEKLY_PLAN_SCHEMA)
        return parse_weekly_plan(data)

    try:
        plan = await call_with_retry(
            attempt,
            max_attempts=client.config.max_attempts,
            backoff_base_seconds=client.config.backoff_base_seconds,
            sleep=sleep,
            label="LLM_STUDY",
        )
    except GenerationError:
        logger.error("[LLM_STUDY] Weekly plan generation failed, using fallback plan")
        return PlanGenerationResult(plan=fallback_plan(difficulties, rng), succeeded=False)

    logger.info("[LLM_STUDY] Weekly plan generated")
    return PlanGenerationResult(plan=plan, succeeded=True)


async def generate_seminar(
    client: GeminiClient,
    difficulties: Dict[str, int],
    *,
    sleep: Sleep = asyncio.sleep,
) -> Seminar:
    """
    Ask for a weekend seminar focused on the hardest subjects.
    Raises GenerationError when every attempt fails; there is no local fallback.
    """
    subjects = difficult_subjects(difficulties)
    logger.info(f"[LLM_STUDY] Generating seminar for subjects={subjects}")
    prompt = build_seminar_prompt(subjects)

    async def attempt() -> Seminar:
        data = await client.generate_json(prompt, SEMINAR_SCHEMA)
        return Seminar.model_validate(data)

    seminar = await call_with_retry(
        attempt,
        max_attempts=client.config.max_attempts,
        backoff_base_seconds=client.config.backoff_base_seconds,
        sleep=sleep,
        label="LLM_STUDY",
    )
    logger.info(f"[LLM_STUDY] Seminar generated: '{seminar.title}'")
    return seminar
