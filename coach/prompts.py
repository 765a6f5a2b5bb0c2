"""Prompt construction for every generation task.

Each builder is a pure function of its task. Every prompt shows the model a
literal example of the JSON it must return.
"""

import json
from collections.abc import Callable

import config
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
    TranslateLevels,
    VocabDive,
    WritingReview,
)

JSON_ONLY = "Return ONLY valid JSON. Do not use markdown formatting, code fences or backticks."

EXERCISE_SET_EXAMPLE = """\
{
    "b2": [
        { "question": "The company had to ______ (shut down) due to the crisis.", "type": "fill_in_blank" },
        { "question": "What is the best synonym for 'accomplish'?", "type": "multiple_choice", "options": ["Achieve", "Avoid", "Abandon", "Accept"] }
    ],
    "c1": [
        { "question": "Had it not been for his perseverance, he ______ (give up) long ago.", "type": "fill_in_blank" },
        { "question": "Which sentence demonstrates proper use of inversion?", "type": "multiple_choice", "options": ["Never have I seen such a thing.", "I never have seen such a thing.", "Have I never seen such a thing.", "Such a thing I have never seen."] }
    ]
}"""

EXERCISE_CORRECTION_EXAMPLE = """\
{
    "correct": true,
    "correct_answer": "the correct answer or answers here",
    "feedback": "explanation of why it is correct or incorrect"
}"""

GRAMMAR_FEEDBACK_EXAMPLE = """\
[
    {
        "frase_numero": 1,
        "seccion": "categoría del concepto gramatical",
        "concepto": "el concepto gramatical que se estaba practicando",
        "ejemplo": "el ejemplo de referencia si existe",
        "frase_original": "la frase del usuario",
        "errores_gramaticales": "descripción de los errores encontrados o 'Ningún error' si está correcta",
        "nivel_b2": "versión más natural en inglés nivel B2",
        "nivel_c1": "versión avanzada en inglés nivel C1"
    }
]"""

VOCABULARY_DIVE_EXAMPLE = """\
{
    "spanish_translation": "...",
    "examples": [
        { "english": "...", "spanish": "..." }
    ],
    "exercises": [
        { "question": "The context [GAP] ...", "answer": "correct form" }
    ],
    "pronunciation": { "ipa": "...", "tips": ["Tip 1", "Tip 2"] },
    "common_error": {
        "description": "Explanation of the error...",
        "correction": "Native alternative...",
        "examples": ["Incorrect sentence -> Correct sentence"]
    },
    "c1_tip": {
        "description": "Explanation of the advanced tip...",
        "alternatives": ["Alternative 1", "Alternative 2"],
        "example": "Sentence using the tip..."
    }
}"""

PRONUNCIATION_WORD_EXAMPLE = """\
{
    "word": "the word",
    "spanish_translation": "meaning in Spanish",
    "ipa": "IPA phonetic transcription",
    "difficulty": "easy|medium|hard",
    "tips": "brief pronunciation tip for Spanish speakers"
}"""

PRONUNCIATION_ANALYSIS_EXAMPLE = """\
{
    "score": 85,
    "feedback": "You pronounced the 'th' as 'd'...",
    "tips": "Place your tongue between your teeth..."
}"""

C1_LESSON_EXAMPLE = """\
{
    "topic": "Title of the topic",
    "explanation_en": "Detailed explanation in English (C1 level).",
    "explanation_es": "Detailed explanation in Spanish.",
    "examples": [
        { "english": "Example sentence 1", "spanish": "Translation 1", "note": "Why this is C1" }
    ],
    "exercises": [
        { "question": "Fill in the blank: _____ (Never) have I seen such a thing.", "answer": "Never", "type": "fill_in_blank" },
        { "question": "Rewrite: 'I didn't know she was here.' -> 'Little _____ she was here.'", "answer": "did I know", "type": "rewrite" }
    ]
}"""

C1_CORRECTION_EXAMPLE = """\
{
    "corrections": [
        { "questionIndex": 0, "isCorrect": true, "correctAnswer": "...", "explanation": "..." }
    ],
    "overallFeedback": "General feedback on the user's performance."
}"""

STORY_OPENING_EXAMPLE = """\
{
    "story_segment": "The text of the story intro...",
    "grammar_constraint": "e.g. Mixed Conditional, Inversion, Cleft Sentence, Participle Clause"
}"""

STORY_TURN_EXAMPLE = """\
{
    "is_correct": true,
    "feedback": "Why it was wrong (if false)",
    "story_segment": "Next part of the story (if true)",
    "new_grammar_constraint": "New constraint (if true)"
}"""

WRITING_REVIEW_EXAMPLE = """\
{
    "overallScore": 75,
    "grammarErrors": [
        { "original": "the incorrect phrase or sentence", "correction": "the corrected version", "explanation": "brief explanation of the error in Spanish" }
    ],
    "improvements": [
        { "original": "a sentence that could be improved", "c1Version": "the same idea expressed at C1 level", "explanation": "why this is more advanced (in Spanish)" }
    ],
    "phrasalVerbUsage": {
        "used": ["list of phrasal verbs correctly used"],
        "missing": ["phrasal verbs from the list that weren't used"],
        "suggestions": "how they could have incorporated the missing ones (in Spanish)"
    },
    "generalFeedback": "2-3 sentences of overall feedback and encouragement (in Spanish)"
}"""

LEVELLED_TRANSLATION_EXAMPLE = """\
{
    "b2": { "translation": "English B2 version...", "explanation": "Why this is B2..." },
    "c1": { "translation": "English C1 version...", "explanation": "Why this is C1 (advanced structures, vocabulary, or register)..." }
}"""


def truncate(text: str, limit: int) -> str:
    """Cut text to at most ``limit`` characters."""
    return text if len(text) <= limit else text[:limit]


def _block(text: str) -> str:
    return f'"""\n{text}\n"""'


def build_exercise_gen(task: ExerciseGen) -> str:
    content = truncate(task.topic_content, config.TOPIC_CONTENT_MAX_CHARS)
    count = config.EXERCISES_PER_LEVEL
    return "\n".join(
        [
            "Create English exercises based on the following topic content.",
            "The goal is two blocks of exercises: one for B2 level and one for C1 level.",
            "The exercises should be based on the topic content and MUST include some of "
            "the provided phrasal verbs if they fit naturally.",
            "",
            "Topic Content:",
            _block(content),
            "",
            f"Phrasal Verbs: {json.dumps(task.phrasal_verbs, ensure_ascii=False)}",
            "",
            "IMPORTANT RULES:",
            f"1. {JSON_ONLY} Return a single JSON object.",
            '2. For "fill_in_blank" exercises the question MUST be a complete sentence with '
            "blanks marked using underscores (______). Do not write general instructions.",
            '3. For "multiple_choice" exercises include exactly 4 options in "options".',
            "4. Each exercise must be standalone and answerable directly.",
            "",
            "The JSON structure must be:",
            EXERCISE_SET_EXAMPLE,
            "",
            f"Create {count} exercises for each level. Mix fill_in_blank and multiple_choice types.",
        ]
    )


def build_exercise_correct(task: ExerciseCorrect) -> str:
    return "\n".join(
        [
            f"Question: {task.question}",
            f"User Answer: {task.user_answer}",
            f"Context: {task.context}",
            "",
            "Evaluate if the user's answer is correct for this question.",
            "",
            "IMPORTANT: You MUST return a JSON object with the following structure:",
            EXERCISE_CORRECTION_EXAMPLE,
            "",
            "Rules:",
            '- Always include the "correct_answer" field, even if the user is correct.',
            "- If the question has multiple blanks, provide all correct answers separated by commas.",
            "- Be specific and educational in your feedback.",
            f"- {JSON_ONLY}",
        ]
    )


def build_grammar_correct(task: GrammarCorrect) -> str:
    blocks = []
    for number, item in enumerate(task.sentences, start=1):
        lines = [f"Frase {number}", f"Concepto Gramatical: {item.concept}"]
        if item.section:
            lines.append(f"Categoría: {item.section}")
        if item.example:
            lines.append(f"Ejemplo de referencia: {item.example}")
        lines.append(f'Frase del usuario: "{item.user_sentence}"')
        blocks.append("\n".join(lines))

    return "\n".join(
        [
            "Eres un profesor de inglés y tienes que corregirme las siguientes frases indicando "
            "los errores gramaticales, una forma más inglesa de decirlo en un nivel B2 y otra en "
            "un nivel C1.",
            "",
            "\n\n".join(blocks),
            "",
            f"IMPORTANT: {JSON_ONLY}",
            f"La estructura JSON debe ser un array con exactamente {len(task.sentences)} "
            "objetos, uno por cada frase y en el mismo orden:",
            GRAMMAR_FEEDBACK_EXAMPLE,
        ]
    )


def build_vocab_dive(task: VocabDive) -> str:
    definition = f" (Definition: {task.definition})" if task.definition else ""
    return "\n".join(
        [
            f'Create a C1-level deep dive for the phrasal verb: "{task.phrasal_verb}"{definition}.',
            "",
            "Output Requirements (JSON ONLY, a single object):",
            '1. "spanish_translation": The specific meaning of this phrasal verb in Spanish.',
            '2. "examples": 3 complex C1-level sentences using the verb, with Spanish '
            'translations. Keys: "english", "spanish".',
            '3. "exercises": 3 fill-in-the-blank sentences where the user must use the phrasal '
            'verb, possibly in different tenses. Keys: "question", "answer".',
            '4. "pronunciation": IPA transcription and tips for Spanish speakers. '
            'Key "tips" must be an array of strings.',
            '5. "common_error": A common B2-level error related to this verb. Explain why it is '
            "wrong and show the native alternatives. \"examples\" must be an array of strings.",
            '6. "c1_tip": A C1-level stylistic tip to sound more native. '
            '"alternatives" must be an array of strings.',
            "",
            JSON_ONLY,
            "",
            "JSON Structure:",
            VOCABULARY_DIVE_EXAMPLE,
        ]
    )


def build_sentence_refine(task: SentenceRefine) -> str:
    example = json.dumps(
        {
            "original": task.sentence,
            "polished": "The improved version",
            "explanation": "Why the change was made (grammar, vocabulary, tone)",
        },
        ensure_ascii=False,
        indent=4,
    )
    return "\n".join(
        [
            "Refine the following user sentence to sound like a C1/Native speaker level.",
            f"Context: {task.target_context or 'General'}",
            f'User Sentence: "{task.sentence}"',
            "",
            f"{JSON_ONLY} Return a single object:",
            example,
        ]
    )


def build_pronunciation_word_gen(task: PronunciationWordGen) -> str:
    return "\n".join(
        [
            "Generate a single English word that is challenging for pronunciation, "
            "particularly for Spanish speakers learning English at C1 level.",
            "",
            f"IMPORTANT: Generate a DIFFERENT word each time. Random seed: {task.seed}",
            "",
            f"Focus on this category: {task.category}",
            "",
            "The word should be:",
            "- Not too obscure (useful in everyday or professional contexts)",
            "- Genuinely challenging for Spanish speakers",
            '- Different from common examples like "thorough" or "colonel"',
            "",
            f"{JSON_ONLY} Return a single object:",
            PRONUNCIATION_WORD_EXAMPLE,
        ]
    )


def build_pronunciation_custom_word(task: PronunciationCustomWord) -> str:
    word_example = PRONUNCIATION_WORD_EXAMPLE.replace('"the word"', json.dumps(task.word))
    return "\n".join(
        [
            f'Generate pronunciation information for the English word "{task.word}".',
            "",
            "If this is NOT a valid English word, return:",
            '{\n    "error": true,\n    "message": "This doesn\'t appear to be a valid English word"\n}',
            "",
            f"If it IS a valid English word, return a single object. {JSON_ONLY}",
            word_example,
            "",
            "Focus the tips on sounds that don't exist in Spanish and common mistakes. "
            "Be helpful and encouraging.",
        ]
    )


def build_pronunciation_analyze(task: PronunciationAnalyze) -> str:
    ipa = f" (IPA: {task.ipa})" if task.ipa else ""
    return "\n".join(
        [
            f'Analyze the pronunciation of the word "{task.word}"{ipa}.',
            "The user (Spanish speaker) has recorded themselves saying this word. "
            "The recording is attached.",
            "",
            "Provide:",
            "1. A score from 0-100.",
            "2. Specific feedback on phonemes that sounded incorrect vs correct.",
            "3. Tips to improve.",
            "",
            f"{JSON_ONLY} Return a single object:",
            PRONUNCIATION_ANALYSIS_EXAMPLE,
        ]
    )


def build_c1_lesson_gen(task: C1LessonGen) -> str:
    return "\n".join(
        [
            "Create a C1-level English lesson on a specific advanced grammar or vocabulary "
            "topic (e.g., Inversion, Cleft Sentences, Mixed Conditionals, Subjunctive, "
            "Advanced Collocations).",
            "",
            "Topic: Choose a random advanced topic suitable for C1 students.",
            "",
            f"{JSON_ONLY} Return a single object:",
            C1_LESSON_EXAMPLE,
            "",
            "Create 3 examples and 3 exercises. Every exercise must include its answer.",
        ]
    )


def build_c1_correction(task: C1Correction) -> str:
    exercises = [exercise.model_dump() for exercise in task.exercises]
    return "\n".join(
        [
            f'You are a C1 English teacher. Correct the user\'s answers for the topic: "{task.topic}".',
            "",
            f"Exercises: {json.dumps(exercises, ensure_ascii=False)}",
            f"User Answers: {json.dumps(task.user_answers, ensure_ascii=False)}",
            "",
            f"Return exactly {len(task.exercises)} corrections, one per exercise in order, "
            "with questionIndex starting at 0.",
            f"{JSON_ONLY} Return a single object:",
            C1_CORRECTION_EXAMPLE,
        ]
    )


def build_story_start(task: StoryStart) -> str:
    return "\n".join(
        [
            "You are a master storyteller (Mystery/Thriller genre) and an English teacher.",
            "Start a new suspenseful story in 2-3 sentences.",
            "Then, assign a specific advanced C1 grammar constraint that the user MUST use "
            "to describe their next action.",
            "",
            f"{JSON_ONLY} Return a single object:",
            STORY_OPENING_EXAMPLE,
        ]
    )


def build_story_continue(task: StoryContinue) -> str:
    return "\n".join(
        [
            f'Context: "{task.previous_context}"',
            f'User\'s Action: "{task.user_action}"',
            f'Required Grammar: "{task.grammar_constraint}"',
            "",
            "Task:",
            "1. Evaluate if the User's Action meaningfully uses the Required Grammar.",
            "2. Evaluate if the action makes sense in the story.",
            "3. If valid, continue the story (2-3 sentences max) and set a NEW C1 grammar constraint.",
            "4. If invalid (grammar not used or wrong), provide feedback.",
            "",
            f"{JSON_ONLY} Return a single object. Always include all four fields:",
            STORY_TURN_EXAMPLE,
        ]
    )


def build_writing_review(task: WritingReview) -> str:
    verbs = ", ".join(task.phrasal_verbs) if task.phrasal_verbs else "(none)"
    return "\n".join(
        [
            "You are an experienced English teacher reviewing a student's writing. "
            "The student is a Spanish speaker aiming for C1 level.",
            "",
            f'Topic: "{task.topic}"',
            "",
            f"Phrasal verbs the student should use: {verbs}",
            "",
            "Student's text:",
            _block(task.text),
            "",
            "Analyze the text and provide detailed feedback. Return a single JSON object:",
            WRITING_REVIEW_EXAMPLE,
            "",
            "IMPORTANT:",
            f"- {JSON_ONLY}",
            "- overallScore is an integer from 0 to 100.",
            "- Provide at least 2-3 grammar corrections if errors exist.",
            "- Provide at least 2-3 C1 improvements for the sentences.",
            "- Feedback should be in Spanish but corrections/improvements in English.",
        ]
    )


def build_translate_levels(task: TranslateLevels) -> str:
    return "\n".join(
        [
            f'User input (Spanish): "{task.phrase}"',
            "",
            "Task:",
            "1. Translate this phrase into English at a B2 (Upper Intermediate) level.",
            "2. Translate this phrase into English at a C1 (Advanced/Professional) level.",
            "3. Provide a brief (1 sentence) explanation for why each version fits its level.",
            "",
            f"{JSON_ONLY} Return a single object:",
            LEVELLED_TRANSLATION_EXAMPLE,
        ]
    )


BUILDERS: dict[type, Callable] = {
    ExerciseGen: build_exercise_gen,
    ExerciseCorrect: build_exercise_correct,
    GrammarCorrect: build_grammar_correct,
    VocabDive: build_vocab_dive,
    SentenceRefine: build_sentence_refine,
    PronunciationWordGen: build_pronunciation_word_gen,
    PronunciationCustomWord: build_pronunciation_custom_word,
    PronunciationAnalyze: build_pronunciation_analyze,
    C1LessonGen: build_c1_lesson_gen,
    C1Correction: build_c1_correction,
    StoryStart: build_story_start,
    StoryContinue: build_story_continue,
    WritingReview: build_writing_review,
    TranslateLevels: build_translate_levels,
}


def build(task: GenerationTask) -> PromptSpec:
    """
    Build the prompt for a generation task.

    Args:
        task: A validated task payload

    Returns:
        PromptSpec with the instruction text and, for pronunciation
        analysis, the recorded audio
    """
    builder = BUILDERS[type(task)]
    text = builder(task)
    attachment = task.audio if isinstance(task, PronunciationAnalyze) else None
    return PromptSpec(text=text, attachment=attachment)
