"""Pydantic data models for the English Coach generation pipeline."""

import base64
import random
import re
from datetime import datetime
from typing import Annotated, Literal, Optional, Union

from pydantic import (
    AfterValidator,
    BaseModel,
    ConfigDict,
    Field,
    TypeAdapter,
    field_validator,
    model_validator,
)

import config


def _not_blank(value: str) -> str:
    if not value.strip():
        raise ValueError("must not be blank")
    return value


Text = Annotated[str, AfterValidator(_not_blank)]

_DATA_URL_PREFIX = re.compile(r"^data:[\w/+.-]+;base64,")


# ---------------------------------------------------------------------------
# Domain inputs
# ---------------------------------------------------------------------------


class GrammarConcept(BaseModel):
    """A grammar concept row from the concepts catalog."""

    section: str = ""
    title: str
    example: str = ""


class PhrasalVerb(BaseModel):
    """A phrasal verb with its definition and where it came from."""

    verb: str
    definition: str = ""
    source: str = "sheets"


class SubPage(BaseModel):
    id: str
    title: str


class TopicPage(BaseModel):
    """A study topic page pulled from the notes provider."""

    id: str
    title: str
    url: str = ""
    sub_pages: list[SubPage] = Field(default_factory=list)
    text: str = ""


class WritingPrompt(BaseModel):
    topic: str
    phrasal_verbs: list[PhrasalVerb] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# Prompt payload
# ---------------------------------------------------------------------------


class AudioAttachment(BaseModel):
    """Binary audio sent alongside a prompt."""

    model_config = ConfigDict(frozen=True)

    data: bytes = Field(min_length=1)
    mime_type: str = "audio/webm"

    @field_validator("mime_type")
    @classmethod
    def _audio_mime(cls, value: str) -> str:
        if not value.startswith("audio/"):
            raise ValueError(f"not an audio mime type: {value}")
        return value

    @classmethod
    def from_base64(cls, encoded: str, mime_type: str = "audio/webm") -> "AudioAttachment":
        """Decode base64 audio, accepting an optional data-URL prefix."""
        payload = _DATA_URL_PREFIX.sub("", encoded.strip())
        return cls(data=base64.b64decode(payload, validate=True), mime_type=mime_type)


class PromptSpec(BaseModel):
    """The full instruction text plus optional audio. Built once per task."""

    model_config = ConfigDict(frozen=True)

    text: str
    attachment: Optional[AudioAttachment] = None


# ---------------------------------------------------------------------------
# Generation tasks
# ---------------------------------------------------------------------------


class _Task(BaseModel):
    model_config = ConfigDict(frozen=True)


class ExerciseGen(_Task):
    kind: Literal["exercise_gen"] = "exercise_gen"
    topic_content: Text
    phrasal_verbs: list[str] = Field(default_factory=list)


class ExerciseCorrect(_Task):
    kind: Literal["exercise_correct"] = "exercise_correct"
    question: Text
    user_answer: Text
    context: str = ""
    expected_answer: Optional[str] = None


class GrammarSentence(BaseModel):
    """One user sentence written to practise a grammar concept."""

    model_config = ConfigDict(frozen=True)

    section: str = ""
    concept: Text
    example: str = ""
    user_sentence: Text


class GrammarCorrect(_Task):
    kind: Literal["grammar_correct"] = "grammar_correct"
    sentences: list[GrammarSentence] = Field(min_length=1)


class VocabDive(_Task):
    kind: Literal["vocab_dive"] = "vocab_dive"
    phrasal_verb: Text
    definition: str = ""


class SentenceRefine(_Task):
    kind: Literal["sentence_refine"] = "sentence_refine"
    sentence: Text
    target_context: str = "General"


class PronunciationWordGen(_Task):
    kind: Literal["pronunciation_word_gen"] = "pronunciation_word_gen"
    category: Text
    seed: int = Field(ge=0)

    @classmethod
    def random(cls, rng: Optional[random.Random] = None) -> "PronunciationWordGen":
        """Pick a category and a diversification seed."""
        rng = rng or random.Random()
        return cls(
            category=rng.choice(config.PRONUNCIATION_CATEGORIES),
            seed=rng.randrange(config.PRONUNCIATION_SEED_RANGE),
        )


class PronunciationCustomWord(_Task):
    kind: Literal["pronunciation_custom_word"] = "pronunciation_custom_word"
    word: Text

    @field_validator("word")
    @classmethod
    def _normalize(cls, value: str) -> str:
        return value.strip().lower()


class PronunciationAnalyze(_Task):
    kind: Literal["pronunciation_analyze"] = "pronunciation_analyze"
    word: Text
    ipa: str = ""
    audio: AudioAttachment


class C1LessonGen(_Task):
    kind: Literal["c1_lesson_gen"] = "c1_lesson_gen"


class C1Exercise(BaseModel):
    model_config = ConfigDict(frozen=True)

    question: str
    answer: str = ""
    type: str = "fill_in_blank"


class C1Correction(_Task):
    kind: Literal["c1_correction"] = "c1_correction"
    topic: Text
    exercises: list[C1Exercise] = Field(min_length=1)
    user_answers: list[str]

    @model_validator(mode="after")
    def _answers_match_exercises(self) -> "C1Correction":
        if len(self.user_answers) != len(self.exercises):
            raise ValueError(
                f"expected {len(self.exercises)} answers, got {len(self.user_answers)}"
            )
        return self


class StoryStart(_Task):
    kind: Literal["story_start"] = "story_start"


class StoryContinue(_Task):
    kind: Literal["story_continue"] = "story_continue"
    previous_context: Text
    user_action: Text
    grammar_constraint: Text


class WritingReview(_Task):
    kind: Literal["writing_review"] = "writing_review"
    text: Text
    topic: Text
    phrasal_verbs: list[str] = Field(default_factory=list)

    @field_validator("text")
    @classmethod
    def _long_enough(cls, value: str) -> str:
        if len(value.strip()) < config.MIN_WRITING_CHARS:
            raise ValueError(f"write at least {config.MIN_WRITING_CHARS} characters")
        return value


class TranslateLevels(_Task):
    kind: Literal["translate_levels"] = "translate_levels"
    phrase: Text


GenerationTask = Annotated[
    Union[
        ExerciseGen,
        ExerciseCorrect,
        GrammarCorrect,
        VocabDive,
        SentenceRefine,
        PronunciationWordGen,
        PronunciationCustomWord,
        PronunciationAnalyze,
        C1LessonGen,
        C1Correction,
        StoryStart,
        StoryContinue,
        WritingReview,
        TranslateLevels,
    ],
    Field(discriminator="kind"),
]

_task_adapter = TypeAdapter(GenerationTask)


def task_from_payload(payload: dict) -> GenerationTask:
    """Build a task from a plain dict carrying a ``kind`` tag."""
    return _task_adapter.validate_python(payload)


# ---------------------------------------------------------------------------
# Saved items
# ---------------------------------------------------------------------------


class SavedWord(BaseModel):
    """A word saved for later pronunciation review."""

    id: str
    word: str
    ipa: str = ""
    tips: str = ""
    difficulty: str = "saved"
    created_at: datetime


class SavedLesson(BaseModel):
    """A generated C1 lesson kept for later study. Lesson fields pass through."""

    model_config = ConfigDict(extra="allow")

    id: str
    created_at: datetime
    topic: str = ""
