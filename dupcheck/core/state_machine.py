# Search session states

# No criteria entered yet, or all criteria cleared.
# Timers: none
IDLE = "IDLE"

# Criteria changed; waiting for the quiet period before dispatching.
# Timers: debounce
DEBOUNCING = "DEBOUNCING"

# One lookup outstanding, criteria unchanged since dispatch.
# Timers: none
FETCHING = "FETCHING"

# One lookup outstanding and newer criteria queued behind it.
# Timers: none
FETCHING_WITH_PENDING_REFETCH = "FETCHING_WITH_PENDING_REFETCH"

# Latest lookup completed. Matches are waiting for a row click, or the
# countdown ran out while the workflow did not permit advancing.
# Timers: none
AWAITING_SELECTION = "AWAITING_SELECTION"

# Latest lookup found nothing; counting down to auto-advance.
# Timers: tick, expiry
COUNTING_DOWN = "COUNTING_DOWN"

# Advance signal emitted. Terminal.
# Timers: none
TRANSITIONED = "TRANSITIONED"

ALL_STATES = (
    IDLE,
    DEBOUNCING,
    FETCHING,
    FETCHING_WITH_PENDING_REFETCH,
    AWAITING_SELECTION,
    COUNTING_DOWN,
    TRANSITIONED,
)

# Workflow action token that must be available before advancing
ACTION_NEXT = "NEXT"

# Advance trigger sources
SOURCE_COUNTDOWN = "countdown"
SOURCE_ROW_SELECT = "row_select"
SOURCE_CREATE_NEW = "create_new"
