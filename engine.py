"""Pure exam constants: limits, thresholds, durations. No UI."""
# Options are always labelled A-D; anything else counts as incorrect.
# Accuracy badges need ACCURACY_MIN_ATTEMPTS answers before they can unlock.

OPTION_LABELS = ("A", "B", "C", "D")
PRACTICE_QUESTION_LIMIT = 20
ACCURACY_MIN_ATTEMPTS = 20
DEFAULT_MOCK_DURATION_MINUTES = 90
DEFAULT_MOCK_TOTAL_QUESTIONS = 40
TIMER_TICK_SECONDS = 1
URGENT_REMAINING_SECONDS = 300
WRITE_MAX_ATTEMPTS = 3
WRITE_RETRY_DELAY_SECONDS = 0.5
QUESTION_CHUNK_SIZE = 200
LEADERBOARD_LIMIT = 50
CHAT_HISTORY_LIMIT = 50
MIN_PASSWORD_LENGTH = 6
