"""Pure exam constants: grading, retention, timers. No UI, no I/O."""
# Score = round(100 * correct / total); pass when score >= passing score
# Zero-question sessions score 0 and never pass

DEFAULT_PASSING_SCORE = 60
MIN_SCORE = 0
MAX_SCORE = 100

RETENTION_DAYS = 7
HISTORY_LIMIT = 10

CLOCK_TICK_SECONDS = 1.0
AUTOSAVE_INTERVAL_SECONDS = 30.0
INPUT_DEBOUNCE_SECONDS = 0.4

PROGRESS_KEY = "exam_progress"
CONFIG_KEY = "exam_config"
HISTORY_KEY = "exam_records"

SINGLE_CHOICE = "single"
SHORT_ANSWER = "short"
SHORT_ANSWER_TYPES = {"saq", "sqa", "short", "short_answer"}

UNANSWERED = "unanswered"
PLACEHOLDER_LETTERS = "ABCD"
MAX_OPTIONS = 26
EXPLANATION_EXCERPT = 100

FAST_PACE_SECONDS = 30
SLOW_PACE_SECONDS = 120
REVIEW_POINTERS = 5

DEFAULT_BANK = "sample.json"
