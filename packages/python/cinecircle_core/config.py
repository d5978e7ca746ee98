# Candidate sourcing
PRIMARY_DISCOVER_PAGES = 3
MOOD_DISCOVER_PAGES = 2
USER_PREF_DISCOVER_PAGES = 1
POPULAR_PAGES = 2
TOP_RATED_PAGES = 1
EMERGENCY_PAGES = 5
PAGES_PER_SHUFFLE = 3  # discover page offset per shuffle page
INTERNAL_CANDIDATE_LIMIT = 100
INTERNAL_MIN_RATERS = 2
COLLAB_INJECT_LIMIT = 10
INFLUENCE_INJECT_LIMIT = 25
MIN_VIABLE_CANDIDATES = 15

WILDCARD_MIN_VOTE_AVERAGE = 7.0
WILDCARD_MIN_VOTE_COUNT = 500
EMERGENCY_MIN_VOTE_AVERAGE = 5.5
EMERGENCY_MIN_VOTE_COUNT = 100
POWER_USER_MIN_VOTE_COUNT = 1500
POWER_USER_MIN_VOTE_AVERAGE = 6.8

# Quality gate
MIN_VOTE_COUNT = 50
MIN_VOTE_AVERAGE = 5.0
ACCLAIMED_MIN_VOTE_COUNT = 200
ACCLAIMED_MIN_VOTE_AVERAGE = 7.0

# Profile rules
DISLIKED_SCORE_CEILING = 40
DISLIKED_MIN_RATINGS = 2
ERA_MIN_RATINGS = 5
CREW_MIN_MOVIES = 2
PEER_MIN_SHARED = 5
PEER_MAX_AVG_DIFF = 20
PEER_LOVED_SCORE = 75
PEER_MIN_LOVERS = 2
COLLAB_PICK_LIMIT = 20
INFLUENCE_MIN_SCORE = 70
HISTORY_WINDOW_DAYS = 30
HISTORY_RETENTION_DAYS = 90
HISTORY_PURGE_PROBABILITY = 0.05

# Scoring
BASE_SCORE = 55
GENRE_ANY_MATCH_BONUS = 3
GENRE_TOP_N = 8
GENRE_TOP_TIER = 3
GENRE_TOP_MULTIPLIER = 18
GENRE_REST_MULTIPLIER = 15
DISLIKED_GENRE_PENALTY = 15
SEEN_PENALTY_GROUP = 15
SEEN_PENALTY_SOLO = 30
SESSION_SHOWN_PENALTY = 25
HISTORY_REPEAT_PENALTY = 15
MOOD_BONUS_SCALE = 40
MOOD_THRESHOLD = 0.25
MOOD_THRESHOLD_PENALTY = 20
MOOD_DAMPEN_BELOW = 0.5
LEGACY_MOOD_PREFER_BONUS = 5
LEGACY_MOOD_SOFT_AVOID_PENALTY = 6
ADULT_FAMILY_PENALTY = 15
TEEN_KIDS_ANIMATION_PENALTY = 8
AVAILABILITY_CAP = 13
DIRECTOR_MAX_BONUS = 12
ACTOR_MATCH_BONUS = 6
ACTOR_MAX_MATCHES = 2
ACTOR_MAX_BONUS = 12
ERA_BONUS = 5
COLLAB_MAX_BONUS = 20
INFLUENCE_MAX_BONUS = 30
INTERNAL_SIGNAL_MAX_BONUS = 15
WELL_ROUNDED_MIN_CATEGORIES = 3
WELL_ROUNDED_BONUS = 5

# Mood gating
MOOD_GATE_THRESHOLDS = (0.4, 0.25, 0.15)
MOOD_GATE_TARGET = 30
MOOD_GATE_MIN_SURVIVORS = 10
CREDIT_ENRICH_TOP_N = 30
TOP_BILLED_ACTORS = 5

# Final selection
POPULARITY_FLOOR = 2.0
ADVISORY_WINDOW = 50
FINAL_COUNT = 5

# Caches
CACHE_TTL_S = 60 * 60 * 24 * 7
SESSION_TTL_S = 60 * 60 * 6

# Timeouts
FETCH_TIMEOUT_S = 8.0
REASONING_TIMEOUT_S = 10.0
PIPELINE_BUDGET_S = 45.0  # whole request; late stages degrade instead of failing
