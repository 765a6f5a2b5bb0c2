import json

import pytest

from coach import orchestrators
from coach.errors import TransportError
from coach.models import (
    C1Correction,
    C1Exercise,
    ExerciseCorrect,
    GrammarCorrect,
    GrammarSentence,
    PronunciationCustomWord,
    SentenceRefine,
    StoryContinue,
)
from coach.orchestrators import Done, TaskError

pytestmark = pytest.mark.unit

INVERSION = GrammarSentence(
    section="Inversion",
    concept="Negative adverbials",
    example="Never have I...",
    user_sentence="I have never seen that.",
)


def grammar_item(number: int, **fields) -> dict:
    item = {
        "frase_numero": number,
        "errores_gramaticales": "None",
        "nivel_b2": "...",
        "nivel_c1": "...",
    }
    item.update(fields)
    return item


class TestGrammarCorrection:
    @pytest.mark.asyncio
    async def test_concept_fields_filled_from_request(self, make_ctx):
        """Should fill section, concept and sentence the model left out."""
        raw = "```json\n" + json.dumps([grammar_item(1)]) + "\n```"
        ctx = make_ctx(raw)

        outcome = await orchestrators.correct_grammar(ctx, GrammarCorrect(sentences=[INVERSION]))

        assert isinstance(outcome, Done)
        assert len(outcome.value) == 1
        feedback = outcome.value[0]
        assert feedback.seccion == "Inversion"
        assert feedback.concepto == "Negative adverbials"
        assert feedback.ejemplo == "Never have I..."
        assert feedback.frase_original == "I have never seen that."

    @pytest.mark.asyncio
    async def test_model_cannot_change_concept(self, make_ctx):
        """Should overwrite concept metadata the model altered."""
        raw = json.dumps([grammar_item(1, concepto="Passive voice", seccion="Other")])
        ctx = make_ctx(raw)

        outcome = await orchestrators.correct_grammar(ctx, GrammarCorrect(sentences=[INVERSION]))

        assert outcome.value[0].concepto == "Negative adverbials"
        assert outcome.value[0].seccion == "Inversion"

    @pytest.mark.asyncio
    async def test_item_count_mismatch(self, make_ctx):
        """Should fail at the reconcile stage when an item is missing."""
        raw = json.dumps([grammar_item(1)])
        ctx = make_ctx(raw)
        task = GrammarCorrect(sentences=[INVERSION, INVERSION])

        outcome = await orchestrators.correct_grammar(ctx, task)

        assert isinstance(outcome, TaskError)
        assert outcome.stage == "reconcile"
        assert outcome.kind == "grammar_correct"
        assert outcome.raw_text == raw


class TestFailureStages:
    @pytest.mark.asyncio
    async def test_transport_failure(self, make_ctx):
        """Should surface a provider error as a transport TaskError without retrying."""
        ctx = make_ctx(TransportError("quota exceeded"))

        outcome = await orchestrators.refine_sentence(ctx, SentenceRefine(sentence="I am agree"))

        assert outcome == TaskError(
            stage="transport", kind="sentence_refine", message="quota exceeded"
        )
        assert len(ctx.invoker.prompts) == 1

    @pytest.mark.asyncio
    async def test_parse_failure_keeps_raw(self, make_ctx):
        """Should return the raw model text with a parse failure."""
        raw = "I'm sorry, I can't help with that."
        ctx = make_ctx(raw)

        outcome = await orchestrators.refine_sentence(ctx, SentenceRefine(sentence="I am agree"))

        assert isinstance(outcome, TaskError)
        assert outcome.stage == "parse"
        assert outcome.raw_text == raw


class TestReconciledTasks:
    @pytest.mark.asyncio
    async def test_refine_keeps_original_sentence(self, make_ctx):
        """Should report the user's sentence as the original."""
        ctx = make_ctx('{"original": "I agree", "polished": "I agree.", "explanation": "x"}')

        outcome = await orchestrators.refine_sentence(ctx, SentenceRefine(sentence="I am agree"))

        assert outcome.value.original == "I am agree"
        assert outcome.value.polished == "I agree."

    @pytest.mark.asyncio
    async def test_expected_answer_fills_missing_correction(self, make_ctx):
        """Should use the known answer when the model left correct_answer empty."""
        ctx = make_ctx('{"correct": false, "correct_answer": "", "feedback": "Wrong tense."}')
        task = ExerciseCorrect(question="She ______ (go) home.", user_answer="go", expected_answer="went")

        outcome = await orchestrators.correct_exercise(ctx, task)

        assert outcome.value.correct_answer == "went"
        assert outcome.value.feedback == "Wrong tense."

    @pytest.mark.asyncio
    async def test_expected_answer_overrides_model(self, make_ctx):
        """Should report the known answer even when the model gave another one."""
        ctx = make_ctx('{"correct": false, "correct_answer": "goes", "feedback": "Wrong tense."}')
        task = ExerciseCorrect(question="She ______ (go) home.", user_answer="go", expected_answer="went")

        outcome = await orchestrators.correct_exercise(ctx, task)

        assert outcome.value.correct_answer == "went"

    @pytest.mark.asyncio
    async def test_correction_without_answer_field(self, make_ctx):
        """Should accept a correction that omits correct_answer and fill it from the task."""
        ctx = make_ctx('{"correct": false, "feedback": "Wrong tense."}')
        task = ExerciseCorrect(question="She ______ (go) home.", user_answer="go", expected_answer="went")

        outcome = await orchestrators.correct_exercise(ctx, task)

        assert isinstance(outcome, Done)
        assert outcome.value.correct_answer == "went"

    @pytest.mark.asyncio
    async def test_correction_without_answer_or_key(self, make_ctx):
        """Should leave correct_answer empty when neither side knows it."""
        ctx = make_ctx('{"correct": true}')
        task = ExerciseCorrect(question="She ______ (go) home.", user_answer="went")

        outcome = await orchestrators.correct_exercise(ctx, task)

        assert isinstance(outcome, Done)
        assert outcome.value.correct_answer == ""

    @pytest.mark.asyncio
    async def test_c1_corrections_are_positional(self, make_ctx):
        """Should index corrections by exercise position and fill missing answers."""
        raw = json.dumps(
            {
                "corrections": [
                    {"question_index": 4, "is_correct": False, "correct_answer": ""},
                    {"questionIndex": 9, "isCorrect": True, "correctAnswer": "did she"},
                ],
                "overallFeedback": "Good effort.",
            }
        )
        ctx = make_ctx(raw)
        task = C1Correction(
            topic="Inversion",
            exercises=[
                C1Exercise(question="Never ______ seen it.", answer="have I"),
                C1Exercise(question="Not only ______ finish...", answer="did she"),
            ],
            user_answers=["I have", "did she"],
        )

        outcome = await orchestrators.correct_c1_answers(ctx, task)

        assert isinstance(outcome, Done)
        corrections = outcome.value.corrections
        assert [c.questionIndex for c in corrections] == [0, 1]
        assert corrections[0].correctAnswer == "have I"
        assert corrections[1].isCorrect is True
        assert outcome.value.overallFeedback == "Good effort."

    @pytest.mark.asyncio
    async def test_c1_answer_key_wins(self, make_ctx):
        """Should replace a model answer that disagrees with the answer key."""
        raw = json.dumps(
            {
                "corrections": [
                    {"questionIndex": 0, "isCorrect": False, "correctAnswer": "I have"},
                    {"questionIndex": 1, "isCorrect": True, "correctAnswer": "she did"},
                ]
            }
        )
        ctx = make_ctx(raw)
        task = C1Correction(
            topic="Inversion",
            exercises=[
                C1Exercise(question="Never ______ seen it.", answer="have I"),
                C1Exercise(question="Not only ______ finish..."),
            ],
            user_answers=["I have", "did she"],
        )

        outcome = await orchestrators.correct_c1_answers(ctx, task)

        corrections = outcome.value.corrections
        assert corrections[0].correctAnswer == "have I"
        assert corrections[1].correctAnswer == "she did"

    @pytest.mark.asyncio
    async def test_c1_missing_correction(self, make_ctx):
        """Should fail when there is not one correction per exercise."""
        raw = json.dumps({"corrections": [{"questionIndex": 0, "isCorrect": True}]})
        ctx = make_ctx(raw)
        task = C1Correction(
            topic="Inversion",
            exercises=[C1Exercise(question="a"), C1Exercise(question="b")],
            user_answers=["x", "y"],
        )

        outcome = await orchestrators.correct_c1_answers(ctx, task)

        assert isinstance(outcome, TaskError)
        assert outcome.stage == "reconcile"


class TestCustomWord:
    @pytest.mark.asyncio
    async def test_rejected_word(self, make_ctx):
        """Should turn the model's not-a-word answer into a rejected TaskError."""
        ctx = make_ctx('{"error": true, "message": "This doesn\'t appear to be a valid English word"}')

        outcome = await orchestrators.lookup_custom_word(ctx, PronunciationCustomWord(word="asdfgh"))

        assert isinstance(outcome, TaskError)
        assert outcome.stage == "rejected"
        assert "valid English word" in outcome.message

    @pytest.mark.asyncio
    async def test_word_comes_from_request(self, make_ctx):
        """Should report the normalized word the user asked about."""
        ctx = make_ctx(
            '{"word": "Colonel", "ipa": "/ˈkɜːrnəl/", "difficulty": "Hard", "tips": ["Say kernel"]}'
        )

        outcome = await orchestrators.lookup_custom_word(ctx, PronunciationCustomWord(word=" Colonel "))

        assert isinstance(outcome, Done)
        assert outcome.value.word == "colonel"
        assert outcome.value.difficulty == "hard"
        assert outcome.value.tips == "Say kernel"


class TestDispatch:
    @pytest.mark.asyncio
    async def test_routes_by_task_type(self, make_ctx):
        """Should run the orchestrator registered for the task."""
        ctx = make_ctx('{"is_correct": false, "feedback": "Use an inversion."}')
        task = StoryContinue(
            previous_context="The door creaked.",
            user_action="I go inside.",
            grammar_constraint="Start with 'Hardly had'",
        )

        outcome = await orchestrators.dispatch(ctx, task)

        assert isinstance(outcome, Done)
        assert outcome.value.is_correct is False
        assert "Hardly had" in ctx.invoker.prompts[0].text

    @pytest.mark.asyncio
    async def test_random_pronunciation_word(self, make_ctx):
        """Should draw category and seed from the context when no task is given."""
        ctx = make_ctx('{"word": "worcestershire", "ipa": "/ˈwʊstərʃər/", "difficulty": "hard"}')

        outcome = await orchestrators.generate_pronunciation_word(ctx)

        assert outcome.value.word == "worcestershire"
        assert "Random seed:" in ctx.invoker.prompts[0].text

    def test_every_task_type_registered(self):
        """Should have an orchestrator for each task kind."""
        from typing import get_args

        from coach.models import GenerationTask

        task_types = get_args(get_args(GenerationTask)[0])
        assert set(task_types) == set(orchestrators.ORCHESTRATORS)
