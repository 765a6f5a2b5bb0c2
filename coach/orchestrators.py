"""Task orchestrators: build, invoke, sanitize, parse and reconcile one task.

Every orchestrator returns a TaskOutcome. Failures from the model provider,
the parser or the reconciler come back as a TaskError value naming the stage
that failed; nothing is retried here.
"""

import random
from collections.abc import Callable
from dataclasses import dataclass, field
from functools import partial
from pathlib import Path
from typing import Any, Generic, Literal, Optional, Protocol, TypeVar

import httpx

import config
from coach import prompts, shapes
from coach.catalog import load_engineer_vocabulary, load_grammar_concepts, load_ignored_titles
from coach.errors import ConfigurationError, TransportError
from coach.logger import get_logger, preview
from coach.models import (
    C1Correction,
    C1LessonGen,
    ExerciseCorrect,
    ExerciseGen,
    GenerationTask,
    GrammarCorrect,
    PromptSpec,
    PronunciationAnalyze,
    PronunciationCustomWord,
    PronunciationWordGen,
    SentenceRefine,
    StoryContinue,
    StoryStart,
    TopicPage,
    TranslateLevels,
    VocabDive,
    WritingPrompt,
    WritingReview,
)
from coach.notion_client import NotionClient, blocks_to_text, find_topic_pages, sub_pages
from coach.parser import Ok, ParseFailure, Shape, parse
from coach.reconciler import ReconciliationMismatch, reconcile
from coach.sanitizer import sanitize
from coach.selection import SelectionExhausted, SelectionPool, sample_distinct, select
from coach.sheets_client import SheetsClient, rows_to_phrasal_verbs

T = TypeVar("T")

Stage = Literal["configuration", "selection", "transport", "parse", "reconcile", "rejected"]


class Invoker(Protocol):
    async def invoke(self, spec: PromptSpec) -> str: ...


@dataclass(frozen=True)
class CoachContext:
    """Request-scoped collaborators handed to every orchestrator."""

    invoker: Invoker
    rng: random.Random = field(default_factory=random.Random)


@dataclass(frozen=True)
class Done(Generic[T]):
    value: T


@dataclass(frozen=True)
class TaskError:
    """A failed task. ``raw_text`` carries the model output when there was one."""

    stage: Stage
    kind: str
    message: str
    raw_text: Optional[str] = None


TaskOutcome = Done | TaskError

Reconcile = Callable[[Ok], Any]


async def run_task(
    ctx: CoachContext,
    task: GenerationTask,
    shape: Shape,
    reconcile_with: Optional[Reconcile] = None,
) -> TaskOutcome:
    """
    Run one generation task through the whole pipeline.

    Args:
        ctx: Request context with the invoker
        task: Validated task payload
        shape: Expected result shape
        reconcile_with: Optional step merging caller ground truth into the parsed value

    Returns:
        Done with the validated value, or TaskError naming the failed stage
    """
    logger = get_logger()
    kind = task.kind

    spec = prompts.build(task)
    logger.debug(f"[{kind}] Built prompt ({len(spec.text)} chars)")

    try:
        raw = await ctx.invoker.invoke(spec)
    except TransportError as e:
        logger.error(f"[{kind}] Generation failed: {e}")
        return TaskError(stage="transport", kind=kind, message=str(e))
    logger.debug(f"[{kind}] Invoked: {preview(raw)}")

    text = sanitize(raw)
    parsed = parse(text, shape)
    if isinstance(parsed, ParseFailure):
        logger.warning(f"[{kind}] Could not parse {shape.name}: {parsed.error} | {preview(raw)}")
        return TaskError(stage="parse", kind=kind, message=parsed.error, raw_text=raw)
    logger.debug(f"[{kind}] Parsed {shape.name}")

    if reconcile_with is not None:
        result = reconcile_with(parsed)
        if isinstance(result, ReconciliationMismatch):
            logger.warning(f"[{kind}] {result.error} | {preview(raw)}")
            return TaskError(stage="reconcile", kind=kind, message=result.error, raw_text=raw)
        parsed = result
        logger.debug(f"[{kind}] Reconciled")

    return Done(parsed.value)


# ---------------------------------------------------------------------------
# Generation tasks
# ---------------------------------------------------------------------------


async def generate_exercises(ctx: CoachContext, task: ExerciseGen) -> TaskOutcome:
    """B2 and C1 exercises built from a topic page."""
    return await run_task(ctx, task, shapes.EXERCISE_SET)


async def correct_exercise(ctx: CoachContext, task: ExerciseCorrect) -> TaskOutcome:
    """Check one exercise answer. A known expected answer replaces the model's."""
    reconcile_with = None
    if task.expected_answer:
        reconcile_with = partial(
            reconcile,
            authoritative={"correct_answer": task.expected_answer},
            authoritative_fields=("correct_answer",),
        )
    return await run_task(ctx, task, shapes.EXERCISE_CORRECTION, reconcile_with)


GRAMMAR_AUTHORITATIVE_FIELDS = ("seccion", "concepto", "ejemplo", "frase_original")


async def correct_grammar(ctx: CoachContext, task: GrammarCorrect) -> TaskOutcome:
    """
    Correct a batch of grammar-challenge sentences.

    The concept, section, reference example and the user's sentence always come
    from the request, whatever the model echoed back.
    """
    truth = [
        {
            "seccion": s.section,
            "concepto": s.concept,
            "ejemplo": s.example,
            "frase_original": s.user_sentence,
        }
        for s in task.sentences
    ]
    reconcile_with = partial(
        reconcile, authoritative=truth, authoritative_fields=GRAMMAR_AUTHORITATIVE_FIELDS
    )
    return await run_task(ctx, task, shapes.GRAMMAR_FEEDBACK, reconcile_with)


async def vocabulary_dive(ctx: CoachContext, task: VocabDive) -> TaskOutcome:
    return await run_task(ctx, task, shapes.VOCABULARY_DIVE)


async def refine_sentence(ctx: CoachContext, task: SentenceRefine) -> TaskOutcome:
    reconcile_with = partial(
        reconcile, authoritative={"original": task.sentence}, authoritative_fields=("original",)
    )
    return await run_task(ctx, task, shapes.SENTENCE_REFINEMENT, reconcile_with)


async def generate_pronunciation_word(
    ctx: CoachContext, task: Optional[PronunciationWordGen] = None
) -> TaskOutcome:
    """Generate a practice word. Without a task, a category and seed are drawn from ctx.rng."""
    task = task or PronunciationWordGen.random(ctx.rng)
    return await run_task(ctx, task, shapes.PRONUNCIATION_WORD)


async def lookup_custom_word(ctx: CoachContext, task: PronunciationCustomWord) -> TaskOutcome:
    """
    Pronunciation data for a word the user typed.

    The model may refuse input that is not an English word; that refusal is
    returned as a TaskError with stage ``rejected``.
    """
    reconcile_with = partial(
        reconcile, authoritative={"word": task.word}, authoritative_fields=("word",)
    )
    outcome = await run_task(ctx, task, shapes.PRONUNCIATION_LOOKUP, reconcile_with)
    if isinstance(outcome, Done) and outcome.value.error:
        message = outcome.value.message or "This doesn't appear to be a valid English word"
        get_logger().info(f"[{task.kind}] Rejected '{task.word}': {message}")
        return TaskError(stage="rejected", kind=task.kind, message=message)
    return outcome


async def analyze_pronunciation(ctx: CoachContext, task: PronunciationAnalyze) -> TaskOutcome:
    return await run_task(ctx, task, shapes.PRONUNCIATION_ANALYSIS)


async def generate_c1_lesson(ctx: CoachContext, task: Optional[C1LessonGen] = None) -> TaskOutcome:
    return await run_task(ctx, task or C1LessonGen(), shapes.C1_LESSON)


C1_AUTHORITATIVE_FIELDS = ("questionIndex", "correctAnswer")


async def correct_c1_answers(ctx: CoachContext, task: C1Correction) -> TaskOutcome:
    """
    Correct the answers to a C1 lesson.

    Corrections are matched to exercises by position: there must be exactly one
    per exercise, ``questionIndex`` is the exercise position and ``correctAnswer``
    comes from the lesson's answer key wherever the key has one.
    """
    truth = []
    for i, exercise in enumerate(task.exercises):
        known = {"questionIndex": i}
        if exercise.answer:
            known["correctAnswer"] = exercise.answer
        truth.append(known)

    def reconcile_corrections(parsed: Ok):
        report = parsed.value
        merged = reconcile(Ok(report.corrections), truth, C1_AUTHORITATIVE_FIELDS)
        if isinstance(merged, ReconciliationMismatch):
            return merged
        return Ok(report.model_copy(update={"corrections": merged.value}))

    return await run_task(ctx, task, shapes.C1_CORRECTION, reconcile_corrections)


async def start_story(ctx: CoachContext, task: Optional[StoryStart] = None) -> TaskOutcome:
    return await run_task(ctx, task or StoryStart(), shapes.STORY_OPENING)


async def continue_story(ctx: CoachContext, task: StoryContinue) -> TaskOutcome:
    return await run_task(ctx, task, shapes.STORY_TURN)


async def review_writing(ctx: CoachContext, task: WritingReview) -> TaskOutcome:
    return await run_task(ctx, task, shapes.WRITING_REVIEW)


async def translate_levels(ctx: CoachContext, task: TranslateLevels) -> TaskOutcome:
    return await run_task(ctx, task, shapes.LEVELLED_TRANSLATION)


ORCHESTRATORS: dict[type, Callable] = {
    ExerciseGen: generate_exercises,
    ExerciseCorrect: correct_exercise,
    GrammarCorrect: correct_grammar,
    VocabDive: vocabulary_dive,
    SentenceRefine: refine_sentence,
    PronunciationWordGen: generate_pronunciation_word,
    PronunciationCustomWord: lookup_custom_word,
    PronunciationAnalyze: analyze_pronunciation,
    C1LessonGen: generate_c1_lesson,
    C1Correction: correct_c1_answers,
    StoryStart: start_story,
    StoryContinue: continue_story,
    WritingReview: review_writing,
    TranslateLevels: translate_levels,
}


async def dispatch(ctx: CoachContext, task: GenerationTask) -> TaskOutcome:
    """Run the orchestrator registered for the task's type."""
    return await ORCHESTRATORS[type(task)](ctx, task)


# ---------------------------------------------------------------------------
# Feeds (no model call)
# ---------------------------------------------------------------------------


def _feed_error(kind: str, error: Exception) -> TaskError:
    if isinstance(error, ConfigurationError):
        stage = "configuration"
    elif isinstance(error, SelectionExhausted):
        stage = "selection"
    else:
        stage = "transport"
    get_logger().error(f"[{kind}] {stage} error: {error}")
    return TaskError(stage=stage, kind=kind, message=str(error))


async def pick_topic(
    ctx: CoachContext,
    http: httpx.AsyncClient,
    root_id: Optional[str] = None,
    ignored_titles: Optional[set[str]] = None,
) -> TaskOutcome:
    """
    Pick a random study topic page from Notion.

    Args:
        ctx: Request context (its rng drives the pick)
        http: Shared async HTTP client
        root_id: Page to search under. Defaults to NOTION_ROOT_PAGE_ID.
        ignored_titles: Titles to skip. Defaults to the ignored-titles file.

    Returns:
        Done(TopicPage) or TaskError
    """
    try:
        notion = NotionClient(http)
        root_id = root_id or config.NOTION_ROOT_PAGE_ID
        if not root_id:
            raise ConfigurationError("NOTION_ROOT_PAGE_ID is not set")
        if ignored_titles is None:
            ignored_titles = load_ignored_titles()

        candidates = await find_topic_pages(notion, root_id, ignored_titles)
        pool = SelectionPool.excluding(candidates, ignored_titles, key=lambda c: c.title)
        page = select(pool, ctx.rng)
        url = await notion.page_url(page.id)
    except (ConfigurationError, TransportError, SelectionExhausted) as e:
        return _feed_error("topic", e)

    get_logger().info(f"Selected topic: {page.title}")
    return Done(
        TopicPage(
            id=page.id,
            title=page.title,
            url=url,
            sub_pages=sub_pages(page.blocks),
            text=blocks_to_text(page.blocks),
        )
    )


def pick_grammar_concepts(
    ctx: CoachContext,
    k: int = config.GRAMMAR_CONCEPTS_PER_ROUND,
    path: Path = config.GRAMMAR_CONCEPTS_CSV,
) -> TaskOutcome:
    """Pick ``k`` distinct grammar concepts for a grammar-challenge round."""
    try:
        concepts = load_grammar_concepts(path)
    except FileNotFoundError:
        missing = ConfigurationError(f"Grammar concepts CSV not found: {path}")
        return _feed_error("grammar_concepts", missing)
    except (KeyError, ValueError) as e:
        unreadable = ConfigurationError(f"Grammar concepts CSV could not be read: {path} ({e!r})")
        return _feed_error("grammar_concepts", unreadable)

    chosen = sample_distinct(SelectionPool(concepts), k, ctx.rng, key=lambda c: c.title)
    if not chosen:
        return _feed_error("grammar_concepts", SelectionExhausted("No grammar concepts found"))
    return Done(chosen)


def _verb_key(verb) -> str:
    return verb.verb.lower()


async def pick_exercise_verbs(
    ctx: CoachContext,
    http: httpx.AsyncClient,
    k: int = config.EXERCISE_PHRASAL_VERBS,
) -> TaskOutcome:
    """Pick ``k`` distinct phrasal verbs from the spreadsheet for topic exercises."""
    try:
        rows = await SheetsClient(http).fetch_rows()
    except (ConfigurationError, TransportError) as e:
        return _feed_error("phrasal_verbs", e)

    verbs = rows_to_phrasal_verbs(rows)
    return Done(sample_distinct(SelectionPool(verbs), k, ctx.rng, key=_verb_key))


async def pick_writing_prompt(
    ctx: CoachContext,
    http: httpx.AsyncClient,
    csv_path: Path = config.ENGINEER_VOCABULARY_CSV,
    per_source: int = config.WRITING_VERBS_PER_SOURCE,
) -> TaskOutcome:
    """
    Pick a writing topic and a mix of phrasal verbs to use in it.

    Verbs come from the vocabulary CSV and the spreadsheet, ``per_source`` from
    each, with spreadsheet verbs that repeat a CSV verb skipped. If the
    spreadsheet is unavailable the prompt carries the CSV verbs only.
    """
    logger = get_logger()
    topic = select(SelectionPool(config.WRITING_TOPICS), ctx.rng)

    try:
        vocabulary = load_engineer_vocabulary(csv_path)
    except (KeyError, ValueError) as e:
        unreadable = ConfigurationError(f"Vocabulary CSV could not be read: {csv_path} ({e!r})")
        return _feed_error("writing_prompt", unreadable)

    csv_verbs = sample_distinct(SelectionPool(vocabulary), per_source, ctx.rng, key=_verb_key)

    sheets_verbs = []
    try:
        rows = await SheetsClient(http).fetch_rows()
    except (ConfigurationError, TransportError) as e:
        logger.warning(f"Sheets unavailable, using CSV verbs only: {e}")
    else:
        pool = SelectionPool.excluding(
            rows_to_phrasal_verbs(rows), {_verb_key(v) for v in csv_verbs}, key=_verb_key
        )
        sheets_verbs = sample_distinct(pool, per_source, ctx.rng, key=_verb_key)

    verbs = csv_verbs + sheets_verbs
    ctx.rng.shuffle(verbs)
    logger.info(f"Writing prompt: {len(csv_verbs)} verbs from CSV, {len(sheets_verbs)} from Sheets")
    return Done(WritingPrompt(topic=topic, phrasal_verbs=verbs))
