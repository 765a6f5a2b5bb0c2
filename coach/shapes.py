"""Result models the model output is validated against, one Shape per task.

Each shape documents the alternate key names it accepts. The model does not
always follow the requested field names, so the parser copies the first
present alternate into the canonical field before validation.
"""

from typing import Any, Optional

from pydantic import BaseModel, Field, model_validator

from coach.models import C1Exercise, Text
from coach.parser import Shape, apply_aliases

# Keys tried, in order, when a free-text list item arrives as an object.
TEXT_KEYS = ("text", "sentence", "english", "example")


def flatten_text(item: Any) -> str:
    """Reduce a list item to a display string."""
    if isinstance(item, dict):
        for key in TEXT_KEYS:
            value = item.get(key)
            if isinstance(value, str) and value.strip():
                return value
        return " - ".join(str(v) for v in item.values())
    return str(item)


def _as_text_list(value: Any) -> Any:
    if isinstance(value, str):
        return [value] if value.strip() else []
    if isinstance(value, list):
        return [flatten_text(v) for v in value]
    return value


def _as_text(value: Any) -> Any:
    if isinstance(value, list):
        return " ".join(flatten_text(v) for v in value)
    return value


def _map_items(value: Any, aliases: dict) -> Any:
    if not isinstance(value, list):
        return value
    return [apply_aliases(v, aliases) if isinstance(v, dict) else v for v in value]


# ---------------------------------------------------------------------------
# Topic exercises
# ---------------------------------------------------------------------------

EXERCISE_ALIASES = {
    "question": ("text", "sentence", "prompt"),
    "type": ("exercise_type",),
}


class Exercise(BaseModel):
    question: Text
    type: str = "fill_in_blank"
    options: list[str] = Field(default_factory=list)


class ExerciseSet(BaseModel):
    b2: list[Exercise] = Field(min_length=1)
    c1: list[Exercise] = Field(min_length=1)


def _adapt_exercise_set(data: dict) -> dict:
    data = dict(data)
    for level in ("b2", "c1"):
        items = _map_items(data.get(level), EXERCISE_ALIASES)
        if isinstance(items, list):
            for item in items:
                if isinstance(item, dict) and isinstance(item.get("options"), dict):
                    item["options"] = list(item["options"].values())
        data[level] = items
    return data


class ExerciseCorrection(BaseModel):
    correct: bool
    correct_answer: str = ""
    feedback: str = ""


# ---------------------------------------------------------------------------
# Grammar challenge
# ---------------------------------------------------------------------------


class GrammarFeedback(BaseModel):
    """Feedback for one user sentence. Concept fields come from the caller."""

    frase_numero: int
    seccion: str = ""
    concepto: str = ""
    ejemplo: str = ""
    frase_original: str = ""
    errores_gramaticales: str
    nivel_b2: str
    nivel_c1: str


GRAMMAR_FEEDBACK_ALIASES = {
    "frase_numero": ("numero", "sentence_number"),
    "errores_gramaticales": ("errores", "grammar_errors"),
}


# ---------------------------------------------------------------------------
# Vocabulary deep dive
# ---------------------------------------------------------------------------

VOCAB_EXAMPLE_ALIASES = {"english": ("sentence", "text", "example")}
VOCAB_EXERCISE_ALIASES = {"question": ("text", "sentence"), "answer": ("correct_answer",)}


class VocabExample(BaseModel):
    english: Text
    spanish: str = ""


class VocabExercise(BaseModel):
    question: Text
    answer: str


class PronunciationGuide(BaseModel):
    ipa: str = ""
    tips: list[str] = Field(default_factory=list)


class CommonError(BaseModel):
    title: str = ""
    description: str
    correction: str = ""
    examples: list[str] = Field(default_factory=list)


class C1Tip(BaseModel):
    title: str = ""
    description: str
    alternatives: list[str] = Field(default_factory=list)
    example: str = ""


class VocabularyDive(BaseModel):
    spanish_translation: str
    examples: list[VocabExample] = Field(min_length=1)
    exercises: list[VocabExercise] = Field(min_length=1)
    pronunciation: PronunciationGuide
    common_error: Optional[CommonError] = None
    c1_tip: Optional[C1Tip] = None


def _adapt_vocabulary_dive(data: dict) -> dict:
    data = dict(data)
    data["examples"] = _map_items(data.get("examples"), VOCAB_EXAMPLE_ALIASES)
    data["exercises"] = _map_items(data.get("exercises"), VOCAB_EXERCISE_ALIASES)

    pronunciation = data.get("pronunciation")
    if isinstance(pronunciation, dict):
        pronunciation = dict(pronunciation)
        pronunciation["tips"] = _as_text_list(pronunciation.get("tips", []))
        data["pronunciation"] = pronunciation

    for key, list_field in (("common_error", "examples"), ("c1_tip", "alternatives")):
        section = data.get(key)
        if isinstance(section, dict):
            section = dict(section)
            section[list_field] = _as_text_list(section.get(list_field, []))
            data[key] = section
    return data


class SentenceRefinement(BaseModel):
    original: str = ""
    polished: Text
    explanation: str = ""


# ---------------------------------------------------------------------------
# Pronunciation
# ---------------------------------------------------------------------------


class PronunciationWord(BaseModel):
    word: Text
    spanish_translation: str = ""
    ipa: str = ""
    difficulty: str = "medium"
    tips: str = ""


def _adapt_pronunciation_word(data: dict) -> dict:
    data = dict(data)
    data["tips"] = _as_text(data.get("tips", ""))
    if isinstance(data.get("difficulty"), str):
        data["difficulty"] = data["difficulty"].strip().lower()
    return data


class PronunciationLookup(BaseModel):
    """Either word data or the model's refusal for a non-word."""

    error: bool = False
    message: str = ""
    word: str = ""
    spanish_translation: str = ""
    ipa: str = ""
    difficulty: str = "medium"
    tips: str = ""

    @model_validator(mode="after")
    def _word_unless_error(self) -> "PronunciationLookup":
        if not self.error and not self.word.strip():
            raise ValueError("word is required unless error is true")
        return self


class PronunciationAnalysis(BaseModel):
    score: int = Field(ge=0, le=100)
    feedback: str
    tips: str = ""


def _adapt_pronunciation_analysis(data: dict) -> dict:
    data = dict(data)
    data["tips"] = _as_text(data.get("tips", ""))
    return data


# ---------------------------------------------------------------------------
# C1 lessons
# ---------------------------------------------------------------------------


class LessonExample(BaseModel):
    english: Text
    spanish: str = ""
    note: str = ""


class C1Lesson(BaseModel):
    topic: Text
    explanation_en: str
    explanation_es: str = ""
    examples: list[LessonExample] = Field(default_factory=list)
    exercises: list[C1Exercise] = Field(min_length=1)


C1_CORRECTION_ALIASES = {
    "questionIndex": ("question_index", "index"),
    "isCorrect": ("is_correct", "correct"),
    "correctAnswer": ("correct_answer", "answer"),
}


class C1CorrectionItem(BaseModel):
    questionIndex: int
    isCorrect: bool
    correctAnswer: str = ""
    explanation: str = ""


class C1CorrectionReport(BaseModel):
    corrections: list[C1CorrectionItem]
    overallFeedback: str = ""


def _adapt_c1_correction(data: dict) -> dict:
    data = apply_aliases(data, {"overallFeedback": ("overall_feedback",)})
    data["corrections"] = _map_items(data.get("corrections"), C1_CORRECTION_ALIASES)
    return data


# ---------------------------------------------------------------------------
# Interactive story
# ---------------------------------------------------------------------------


class StoryOpening(BaseModel):
    story_segment: Text
    grammar_constraint: Text


class StoryTurn(BaseModel):
    is_correct: bool
    feedback: str = ""
    story_segment: str = ""
    new_grammar_constraint: str = ""

    @model_validator(mode="after")
    def _complete_turn(self) -> "StoryTurn":
        if self.is_correct:
            if not self.story_segment.strip() or not self.new_grammar_constraint.strip():
                raise ValueError(
                    "an accepted action needs story_segment and new_grammar_constraint"
                )
        elif not self.feedback.strip():
            raise ValueError("a rejected action needs feedback")
        return self


# ---------------------------------------------------------------------------
# Writing practice & translation
# ---------------------------------------------------------------------------


class GrammarErrorNote(BaseModel):
    original: str
    correction: str
    explanation: str = ""


class Improvement(BaseModel):
    original: str
    c1Version: str
    explanation: str = ""


class PhrasalVerbUsage(BaseModel):
    used: list[str] = Field(default_factory=list)
    missing: list[str] = Field(default_factory=list)
    suggestions: str = ""


class WritingReviewReport(BaseModel):
    overallScore: int = Field(ge=0, le=100)
    grammarErrors: list[GrammarErrorNote] = Field(default_factory=list)
    improvements: list[Improvement] = Field(default_factory=list)
    phrasalVerbUsage: PhrasalVerbUsage = Field(default_factory=PhrasalVerbUsage)
    generalFeedback: str = ""


def _adapt_writing_review(data: dict) -> dict:
    data = apply_aliases(
        data,
        {
            "overallScore": ("overall_score", "score"),
            "grammarErrors": ("grammar_errors",),
            "phrasalVerbUsage": ("phrasal_verb_usage",),
            "generalFeedback": ("general_feedback", "feedback"),
        },
    )
    data["improvements"] = _map_items(
        data.get("improvements", []), {"c1Version": ("c1_version", "improved")}
    )
    return data


class LevelVersion(BaseModel):
    translation: Text
    explanation: str = ""


class LevelledTranslation(BaseModel):
    b2: LevelVersion
    c1: LevelVersion


# ---------------------------------------------------------------------------
# Shapes
# ---------------------------------------------------------------------------

EXERCISE_SET = Shape("exercise_set", ExerciseSet, adapt=_adapt_exercise_set)
EXERCISE_CORRECTION = Shape(
    "exercise_correction",
    ExerciseCorrection,
    aliases={"correct": ("is_correct", "isCorrect"), "correct_answer": ("correctAnswer",)},
)
GRAMMAR_FEEDBACK = Shape(
    "grammar_feedback", GrammarFeedback, container="array", aliases=GRAMMAR_FEEDBACK_ALIASES
)
VOCABULARY_DIVE = Shape("vocabulary_dive", VocabularyDive, adapt=_adapt_vocabulary_dive)
SENTENCE_REFINEMENT = Shape(
    "sentence_refinement", SentenceRefinement, aliases={"polished": ("refined", "improved")}
)
PRONUNCIATION_WORD = Shape(
    "pronunciation_word", PronunciationWord, adapt=_adapt_pronunciation_word
)
PRONUNCIATION_LOOKUP = Shape(
    "pronunciation_lookup", PronunciationLookup, adapt=_adapt_pronunciation_word
)
PRONUNCIATION_ANALYSIS = Shape(
    "pronunciation_analysis", PronunciationAnalysis, adapt=_adapt_pronunciation_analysis
)
C1_LESSON = Shape("c1_lesson", C1Lesson)
C1_CORRECTION = Shape("c1_correction", C1CorrectionReport, adapt=_adapt_c1_correction)
STORY_OPENING = Shape("story_opening", StoryOpening)
STORY_TURN = Shape("story_turn", StoryTurn)
WRITING_REVIEW = Shape("writing_review", WritingReviewReport, adapt=_adapt_writing_review)
LEVELLED_TRANSLATION = Shape("levelled_translation", LevelledTranslation)
