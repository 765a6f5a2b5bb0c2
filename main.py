#!/usr/bin/env python3
"""English Coach - command line front end for the generation pipeline."""

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path

import httpx
from pydantic import BaseModel, ValidationError

from coach import orchestrators
from coach.errors import ConfigurationError
from coach.gemini_client import GeminiInvoker
from coach.logger import setup_logger
from coach.models import (
    AudioAttachment,
    ExerciseCorrect,
    ExerciseGen,
    PronunciationAnalyze,
    PronunciationCustomWord,
    PronunciationWordGen,
    SentenceRefine,
    StoryContinue,
    TranslateLevels,
    VocabDive,
    WritingReview,
    task_from_payload,
)
from coach.orchestrators import CoachContext, TaskError
from coach.store import SavedLessonStore, SavedWordStore

# Commands that never call the model
FEED_COMMANDS = {"topic", "verbs", "grammar-concepts", "writing-topic"}


def to_jsonable(value):
    if isinstance(value, BaseModel):
        return value.model_dump(mode="json")
    if isinstance(value, list):
        return [to_jsonable(v) for v in value]
    return value


def emit(value) -> None:
    print(json.dumps(to_jsonable(value), ensure_ascii=False, indent=2))


def read_text(path: str) -> str:
    with open(path, "r", encoding="utf-8") as f:
        return f.read()


def build_task(args):
    """Build the generation task for a model-backed command."""
    if args.command == "run":
        return task_from_payload(json.loads(read_text(args.task_file)))
    if args.command == "exercises":
        content = read_text(args.topic_file) if args.topic_file else args.text
        return ExerciseGen(topic_content=content or "", phrasal_verbs=args.verb or [])
    if args.command == "correct":
        return ExerciseCorrect(
            question=args.question,
            user_answer=args.answer,
            context=args.context or "",
            expected_answer=args.expected,
        )
    if args.command == "grammar":
        payload = {"kind": "grammar_correct", "sentences": json.loads(read_text(args.sentences_file))}
        return task_from_payload(payload)
    if args.command == "vocab":
        return VocabDive(phrasal_verb=args.phrasal_verb, definition=args.definition or "")
    if args.command == "refine":
        return SentenceRefine(sentence=args.sentence, target_context=args.target_context)
    if args.command == "word":
        return PronunciationWordGen(category=args.category, seed=args.seed) if args.category else None
    if args.command == "custom-word":
        return PronunciationCustomWord(word=args.word)
    if args.command == "analyze":
        audio = AudioAttachment(data=Path(args.audio_file).read_bytes(), mime_type=args.mime_type)
        return PronunciationAnalyze(word=args.word, ipa=args.ipa or "", audio=audio)
    if args.command == "c1-correct":
        payload = json.loads(read_text(args.correction_file))
        payload["kind"] = "c1_correction"
        return task_from_payload(payload)
    if args.command == "story-continue":
        return StoryContinue(
            previous_context=args.previous_context,
            user_action=args.action,
            grammar_constraint=args.constraint,
        )
    if args.command == "translate":
        return TranslateLevels(phrase=args.phrase)
    if args.command == "review":
        text = read_text(args.text_file) if args.text_file else args.text
        return WritingReview(text=text or "", topic=args.topic, phrasal_verbs=args.verb or [])
    # lesson, story-start
    return None


async def run_feed(args, ctx: CoachContext):
    async with httpx.AsyncClient() as http:
        if args.command == "topic":
            return await orchestrators.pick_topic(ctx, http)
        if args.command == "verbs":
            return await orchestrators.pick_exercise_verbs(ctx, http, k=args.count)
        if args.command == "writing-topic":
            return await orchestrators.pick_writing_prompt(ctx, http)
    return orchestrators.pick_grammar_concepts(ctx, k=args.count)


GENERATION_COMMANDS = {
    "exercises": orchestrators.generate_exercises,
    "correct": orchestrators.correct_exercise,
    "grammar": orchestrators.correct_grammar,
    "vocab": orchestrators.vocabulary_dive,
    "refine": orchestrators.refine_sentence,
    "word": orchestrators.generate_pronunciation_word,
    "custom-word": orchestrators.lookup_custom_word,
    "analyze": orchestrators.analyze_pronunciation,
    "lesson": orchestrators.generate_c1_lesson,
    "c1-correct": orchestrators.correct_c1_answers,
    "story-start": orchestrators.start_story,
    "story-continue": orchestrators.continue_story,
    "translate": orchestrators.translate_levels,
    "review": orchestrators.review_writing,
    "run": orchestrators.dispatch,
}


async def run_generation(args, task) -> orchestrators.TaskOutcome:
    ctx = CoachContext(invoker=GeminiInvoker())
    return await GENERATION_COMMANDS[args.command](ctx, task)


def run_store_command(args, logger: logging.Logger) -> int:
    """Handle ``words`` and ``lessons`` subcommands."""
    store = SavedWordStore() if args.command == "words" else SavedLessonStore()

    if args.action == "list":
        emit(store.load_all())
        return 0

    if args.action == "delete":
        if not store.delete(args.id):
            logger.error(f"No saved item with id {args.id}")
            return 1
        return 0

    if args.command == "words":
        record, created = store.save(args.word, ipa=args.ipa or "", tips=args.tips or "")
    else:
        record, created = store.save(json.loads(read_text(args.lesson_file)))
    if not created:
        logger.info(f"Already saved: {record.id}")
    emit(record)
    return 0


def report_error(error: TaskError, logger: logging.Logger, debug: bool) -> None:
    logger.error(f"{error.kind} failed ({error.stage}): {error.message}")
    if debug and error.raw_text:
        print("----- raw model output -----", file=sys.stderr)
        print(error.raw_text, file=sys.stderr)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="English Coach - B2/C1 practice generated with Gemini",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Random study topic from Notion
  python main.py topic

  # Exercises from a saved topic, using two phrasal verbs
  python main.py exercises --topic-file topic.txt --verb "carry out" --verb "set up"

  # Correct a batch of grammar sentences
  python main.py grammar sentences.json

  # Any task from a JSON payload with a "kind" field
  python main.py --debug run task.json
        """,
    )
    parser.add_argument(
        "--debug",
        action="store_true",
        help="Verbose console logging; print raw model output on failure",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("topic", help="Pick a random study topic page from Notion")
    p = sub.add_parser("verbs", help="Pick phrasal verbs from the spreadsheet")
    p.add_argument("-k", "--count", type=int, default=5)
    p = sub.add_parser("grammar-concepts", help="Pick grammar concepts for a challenge round")
    p.add_argument("-k", "--count", type=int, default=5)
    sub.add_parser("writing-topic", help="Pick a writing topic and phrasal verbs")

    p = sub.add_parser("exercises", help="Generate B2/C1 exercises for a topic")
    group = p.add_mutually_exclusive_group(required=True)
    group.add_argument("--topic-file", help="File with the topic text")
    group.add_argument("--text", help="Topic text")
    p.add_argument("--verb", action="append", help="Phrasal verb to include (repeatable)")

    p = sub.add_parser("correct", help="Check an exercise answer")
    p.add_argument("--question", required=True)
    p.add_argument("--answer", required=True)
    p.add_argument("--context")
    p.add_argument("--expected", help="Known correct answer")

    p = sub.add_parser("grammar", help="Correct grammar-challenge sentences")
    p.add_argument(
        "sentences_file",
        help="JSON list of {section, concept, example, user_sentence}",
    )

    p = sub.add_parser("vocab", help="Deep dive into a phrasal verb")
    p.add_argument("phrasal_verb")
    p.add_argument("--definition")

    p = sub.add_parser("refine", help="Polish a sentence")
    p.add_argument("sentence")
    p.add_argument("--target-context", default="General")

    p = sub.add_parser("word", help="Generate a pronunciation practice word")
    p.add_argument("--category", help="Word category (random if omitted)")
    p.add_argument("--seed", type=int, default=0)

    p = sub.add_parser("custom-word", help="Pronunciation data for a given word")
    p.add_argument("word")

    p = sub.add_parser("analyze", help="Score a recorded pronunciation")
    p.add_argument("word")
    p.add_argument("audio_file")
    p.add_argument("--ipa")
    p.add_argument("--mime-type", default="audio/webm")

    sub.add_parser("lesson", help="Generate a C1 lesson")

    p = sub.add_parser("c1-correct", help="Correct answers to a C1 lesson")
    p.add_argument("correction_file", help="JSON with topic, exercises and user_answers")

    sub.add_parser("story-start", help="Start an interactive story")
    p = sub.add_parser("story-continue", help="Continue an interactive story")
    p.add_argument("--previous-context", required=True)
    p.add_argument("--action", required=True)
    p.add_argument("--constraint", required=True)

    p = sub.add_parser("translate", help="B2 and C1 versions of a phrase")
    p.add_argument("phrase")

    p = sub.add_parser("review", help="Review a piece of writing")
    p.add_argument("--topic", required=True)
    group = p.add_mutually_exclusive_group(required=True)
    group.add_argument("--text-file")
    group.add_argument("--text")
    p.add_argument("--verb", action="append", help="Phrasal verb the text should use (repeatable)")

    p = sub.add_parser("run", help="Run any task from a JSON payload")
    p.add_argument("task_file")

    p = sub.add_parser("words", help="Saved pronunciation words")
    actions = p.add_subparsers(dest="action", required=True)
    actions.add_parser("list")
    save = actions.add_parser("save")
    save.add_argument("word")
    save.add_argument("--ipa")
    save.add_argument("--tips")
    delete = actions.add_parser("delete")
    delete.add_argument("id")

    p = sub.add_parser("lessons", help="Saved C1 lessons")
    actions = p.add_subparsers(dest="action", required=True)
    actions.add_parser("list")
    save = actions.add_parser("save")
    save.add_argument("lesson_file")
    delete = actions.add_parser("delete")
    delete.add_argument("id")

    return parser


def main():
    parser = build_parser()
    args = parser.parse_args()

    logger = setup_logger(level=logging.DEBUG if args.debug else logging.INFO)

    if args.command in ("words", "lessons"):
        try:
            sys.exit(run_store_command(args, logger))
        except (ValueError, OSError) as e:
            logger.error(f"Store error: {e}")
            sys.exit(1)

    try:
        if args.command in FEED_COMMANDS:
            outcome = asyncio.run(run_feed(args, CoachContext(invoker=None)))
        else:
            task = build_task(args)
            outcome = asyncio.run(run_generation(args, task))
    except ValidationError as e:
        logger.error(f"Invalid input: {e}")
        sys.exit(1)
    except ConfigurationError as e:
        logger.error(f"Configuration error: {e}")
        sys.exit(1)
    except (OSError, json.JSONDecodeError) as e:
        logger.error(f"Could not read input: {e}")
        sys.exit(1)
    except KeyboardInterrupt:
        logger.warning("Interrupted by user.")
        sys.exit(1)

    if isinstance(outcome, TaskError):
        report_error(outcome, logger, args.debug)
        sys.exit(1)

    emit(outcome.value)


if __name__ == "__main__":
    main()
