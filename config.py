"""Configuration settings for the English Coach generation pipeline."""

import os
from pathlib import Path

from dotenv import load_dotenv

load_dotenv()

# Base paths
PROJECT_ROOT = Path(__file__).parent
DATA_DIR = PROJECT_ROOT / "data"
LOGS_DIR = PROJECT_ROOT / "logs"

# Flat-file stores
SAVED_WORDS_JSON = DATA_DIR / "saved_words.json"
SAVED_LESSONS_JSON = DATA_DIR / "saved_lessons.json"
IGNORED_TITLES_JSON = DATA_DIR / "ignored_titles.json"

# Local catalogs
GRAMMAR_CONCEPTS_CSV = DATA_DIR / "grammar_concepts.csv"
ENGINEER_VOCABULARY_CSV = DATA_DIR / "engineer_vocabulary.csv"

# Credentials and identifiers (read from .env / environment)
GEMINI_API_KEY = os.getenv("GEMINI_API_KEY")
NOTION_KEY = os.getenv("NOTION_KEY")
NOTION_ROOT_PAGE_ID = os.getenv("NOTION_ROOT_PAGE_ID") or os.getenv("NOTION_DATABASE_ID")
GOOGLE_SHEETS_API_KEY = os.getenv("GOOGLE_SHEETS_API_KEY")
GOOGLE_SHEETS_ID = os.getenv("GOOGLE_SHEETS_ID")
GOOGLE_SHEETS_RANGE = os.getenv("GOOGLE_SHEETS_RANGE", "A:B")

# Gemini settings
GEMINI_MODEL = "gemini-2.5-flash"
GEMINI_TIMEOUT = 60  # seconds

# Notion / Sheets API settings
NOTION_API_URL = "https://api.notion.com/v1"
NOTION_API_VERSION = "2022-06-28"
NOTION_MAX_DEPTH = 10
SHEETS_API_URL = "https://sheets.googleapis.com/v4/spreadsheets"
HTTP_TIMEOUT = 15  # seconds
HTTP_MAX_RETRIES = 3

# Prompt budgets
TOPIC_CONTENT_MAX_CHARS = 1500
EXERCISES_PER_LEVEL = 3
MIN_WRITING_CHARS = 20

# Selection settings
SELECTION_MAX_ATTEMPTS = 10
GRAMMAR_CONCEPTS_PER_ROUND = 5
EXERCISE_PHRASAL_VERBS = 5
WRITING_VERBS_PER_SOURCE = 2

DEFAULT_IGNORED_TITLES = ["Resources", "Archive", "Template", "Home"]

# Pronunciation word categories (one is picked per request)
PRONUNCIATION_CATEGORIES = [
    "words with silent letters (like 'knight', 'psychology', 'receipt')",
    "words with the 'th' sound (both voiced and voiceless)",
    "words with unusual vowel combinations (like 'queue', 'choir', 'aisle')",
    "words with double consonants that sound different than expected",
    "words ending in '-ough' with different pronunciations",
    "words with the schwa sound that Spanish speakers often mispronounce",
    "medical or scientific terms used in everyday English",
    "words borrowed from French with unusual pronunciations",
    "words with stress patterns different from their spelling suggests",
    "common verbs with irregular past tense pronunciations",
    "words where 'c' or 'g' have unexpected sounds",
    "words with the '-tion' or '-sion' endings",
    "words with 'wr-', 'kn-', or 'gn-' combinations",
    "adjectives ending in '-ous' or '-eous'",
    "words with the 'ure' sound (like 'sure', 'measure', 'treasure')",
]
PRONUNCIATION_SEED_RANGE = 10000

# Writing practice topics
WRITING_TOPICS = [
    "Describe a challenging situation at work and how you handled it",
    "Write about a trip that changed your perspective on life",
    "Discuss the advantages and disadvantages of remote work",
    "Describe your ideal weekend and explain why it appeals to you",
    "Write about a skill you would like to learn and why",
    "Discuss how technology has changed the way we communicate",
    "Describe a memorable meal and what made it special",
    "Write about a book or movie that had a strong impact on you",
    "Discuss the importance of work-life balance in modern society",
    "Describe a person who has influenced your life significantly",
    "Write about your experience learning English and the challenges you faced",
    "Discuss the role of social media in today's society",
    "Describe a goal you achieved and the steps you took to reach it",
    "Write about an environmental issue you care about",
    "Discuss the pros and cons of living in a big city vs. a small town",
]
