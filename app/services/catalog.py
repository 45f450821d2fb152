"""
Static lookup tables for the ENEM study planner: subjects, fallback topics
and the canonical study-day keys.
"""
import unicodedata
from datetime import date
from typing import Dict, List, Optional

SUBJECTS: List[str] = [
    "Linguagens",
    "Ciências Humanas",
    "Ciências da Natureza",
    "Matemática",
    "Redação",
]

# Topics used when the generative API is unavailable
SAMPLE_TOPICS: Dict[str, List[str]] = {
    "Linguagens": [
        "Interpretação de Textos",
        "Gêneros Textuais",
        "Literatura Brasileira",
    ],
    "Ciências Humanas": [
        "História do Brasil",
        "Geografia do Brasil",
        "Sociologia",
    ],
    "Ciências da Natureza": [
        "Física: Eletrodinâmica",
        "Química: Ligações Químicas",
        "Biologia: Ecologia",
    ],
    "Matemática": ["Análise Combinatória", "Funções", "Geometria Espacial"],
    "Redação": ["Estrutura Dissertativo-Argumentativa", "Repertório Sociocultural"],
}

DAYS_OF_WEEK: List[str] = ["Segunda", "Terça", "Quarta", "Quinta", "Sexta", "Sábado"]

DIFFICULTY_MIN = 1
DIFFICULTY_MAX = 5
DEFAULT_DIFFICULTY = 3

HOURS_MIN = 1
HOURS_MAX = 10
DEFAULT_HOURS = 2

SEMINAR_DIFFICULTY_THRESHOLD = 4


def default_difficulties() -> Dict[str, int]:
    return {subject: DEFAULT_DIFFICULTY for subject in SUBJECTS}


# -------------------------------------------------------------------
# Day-name normalization
# -------------------------------------------------------------------
def _fold(label: str) -> str:
    decomposed = unicodedata.normalize("NFKD", label)
    return "".join(c for c in decomposed if not unicodedata.combining(c)).lower()


# "segunda", "segunda-feira", "terca", ... → canonical key
_DAY_SYNONYMS: Dict[str, str] = {}
for _day in DAYS_OF_WEEK:
    _DAY_SYNONYMS[_fold(_day)] = _day
    _DAY_SYNONYMS[_fold(f"{_day}-feira")] = _day
    _DAY_SYNONYMS[_fold(f"{_day} feira")] = _day


def normalize_day_name(label: str) -> str:
    """
    Map any recognized weekday label to its canonical key.

    Accepts the short and "-feira" forms, with or without accents and in any
    case. Unknown labels come back stripped but otherwise untouched, so the
    function is total and canonical keys map to themselves.
    """
    cleaned = (label or "").strip()
    return _DAY_SYNONYMS.get(_fold(cleaned), cleaned)


def is_canonical_day(label: str) -> bool:
    return label in DAYS_OF_WEEK


def day_name_for(today: Optional[date] = None) -> Optional[str]:
    """Canonical study-day key for a date, None on Sunday."""
    today = today or date.today()
    idx = today.weekday()
    if idx >= len(DAYS_OF_WEEK):
        return None
    return DAYS_OF_WEEK[idx]


def check_difficulties(difficulties: Dict[str, int]) -> Dict[str, int]:
    """
    Validate a subject → difficulty mapping.
    Keys must be exactly SUBJECTS and values integers in [1, 5].
    """
    if set(difficulties) != set(SUBJECTS):
        missing = sorted(set(SUBJECTS) - set(difficulties))
        unknown = sorted(set(difficulties) - set(SUBJECTS))
        raise ValueError(f"Invalid subjects: missing={missing} unknown={unknown}")

    checked: Dict[str, int] = {}
    for subject in SUBJECTS:
        value = difficulties[subject]
        if isinstance(value, bool) or not isinstance(value, int):
            raise ValueError(f"Difficulty for '{subject}' must be an integer")
        if not DIFFICULTY_MIN <= value <= DIFFICULTY_MAX:
            raise ValueError(
                f"Difficulty for '{subject}' must be between {DIFFICULTY_MIN} and {DIFFICULTY_MAX}"
            )
        checked[subject] = value
    return checked
