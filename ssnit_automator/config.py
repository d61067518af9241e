"""Configuration and timing profiles for SSNIT contribution automation"""

# ========================================
# SPEED MODE CONFIGURATION
# ========================================
# Choose one mode (set all others to False):
# - DEV_TEST_SPEED: 40-50% faster waits between field writes
# - SUPER_DEV_SPEED: 70-80% faster - only for a portal you control
# - Production: All False (default, safest)

DEV_TEST_SPEED = False
SUPER_DEV_SPEED = False

# ========================================
# PORTAL
# ========================================
PORTAL_BASE_URL = "https://app.issas.ssnit.org.gh"

PAGE_URLS = {
    "report": PORTAL_BASE_URL + "/contributions/view_crs/report",
    "employer": PORTAL_BASE_URL + "/contributions/receive/employer",
    "capture": PORTAL_BASE_URL + "/contributions/receive/capture",
    "unprocessed": PORTAL_BASE_URL + "/contributions/view_crs/unprocessed",
}

BROWSER_DATA_DIR = "./browser_data"
USER_AGENT = "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"

# ========================================
# FILES
# ========================================
STATE_FILE = "automation_state.json"
LOG_FILE = "log.jsonl"
DEBUG_DIALOG_FILE = "debug_dialogs.jsonl"
TIMEZONE = "Africa/Accra"

# ========================================
# BUSINESS RULES
# ========================================
# Employees contributing below this must have their wage adjusted
MIN_CTB = 79.35

# Observation type that carries the employer's regular filing
NORMAL_TYPE = "NORMAL"

# ========================================
# ENGINE LIMITS
# ========================================
RESPONSE_TIMEOUT_MS = 12000  # Wait for a response dialog after submit
MAX_SUBMIT_RETRIES = 1  # One resubmit after the first timeout, then fail
MAX_STUCK_COUNT = 5  # Ticks without progress before forcing an outcome
UNKNOWN_PAGE_LIMIT = 3  # Ticks on an unexpected page before navigating home
NOT_FOUND_LIMIT = 3  # Review-list misses per item before intervention
MAX_WAGE_EDIT_ROUNDS = 1  # Wage-edit passes per CR before a CTB shortfall fails validation

# Fixed-interval ticks per phase (ms)
TICK_INTERVALS_MS = {
    "SCRAPING": 2000,
    "CAPTURE": 2500,
    "VALIDATION": 2000,
    "WAGE_EDIT": 2000,
}
IDLE_TICK_MS = 2000

# ========================================
# TIMING PROFILES
# ========================================
# All delays are in milliseconds (ms)
# Each delay keeps randomization via human_delay() so the portal's
# change handlers see realistic event spacing

TIMING_PROFILES = {
    "default": {
        # Field value injection (blur -> focus -> set -> blur)
        "focus_delay_min": 50,
        "focus_delay_max": 100,
        "blur_settle_min": 200,
        "blur_settle_max": 400,
        # Custom dropdown interaction
        "dropdown_open_min": 600,
        "dropdown_open_max": 700,
        "dropdown_select_min": 300,
        "dropdown_select_max": 400,
        # Buttons and navigation
        "click_settle_min": 300,
        "click_settle_max": 500,
        "search_results_min": 2500,
        "search_results_max": 3000,
        "list_search_min": 1500,
        "list_search_max": 2000,
        # Form fill pacing between fields
        "field_gap_min": 200,
        "field_gap_max": 400,
        "pre_submit_min": 600,
        "pre_submit_max": 800,
    },
    "dev_test": {
        "focus_delay_min": 30,
        "focus_delay_max": 60,
        "blur_settle_min": 120,
        "blur_settle_max": 240,
        "dropdown_open_min": 360,
        "dropdown_open_max": 420,
        "dropdown_select_min": 180,
        "dropdown_select_max": 240,
        "click_settle_min": 180,
        "click_settle_max": 300,
        "search_results_min": 1500,
        "search_results_max": 1800,
        "list_search_min": 900,
        "list_search_max": 1200,
        "field_gap_min": 120,
        "field_gap_max": 240,
        "pre_submit_min": 400,
        "pre_submit_max": 480,
    },
    "super_dev": {
        "focus_delay_min": 25,
        "focus_delay_max": 40,
        "blur_settle_min": 60,
        "blur_settle_max": 120,
        "dropdown_open_min": 300,
        "dropdown_open_max": 350,
        "dropdown_select_min": 150,
        "dropdown_select_max": 200,
        "click_settle_min": 150,
        "click_settle_max": 200,
        "search_results_min": 1000,
        "search_results_max": 1200,
        "list_search_min": 600,
        "list_search_max": 800,
        "field_gap_min": 60,
        "field_gap_max": 120,
        "pre_submit_min": 400,
        "pre_submit_max": 450,
    },
}

# ========================================
# SAFETY VALIDATIONS
# ========================================
# The portal drops value changes that arrive faster than this
_MIN_DELAY_MS = 25
_MIN_DROPDOWN_OPEN_MS = 300
_MIN_PRE_SUBMIT_MS = 400


def get_active_timing():
    """Get the active timing profile based on current speed mode settings"""
    if SUPER_DEV_SPEED:
        return TIMING_PROFILES["super_dev"]
    elif DEV_TEST_SPEED:
        return TIMING_PROFILES["dev_test"]
    else:
        return TIMING_PROFILES["default"]


def validate_timing(timing):
    """Return a list of safety-floor violations for a timing profile"""
    violations = []
    for key, value in timing.items():
        if value < _MIN_DELAY_MS:
            violations.append(f"{key}={value}ms < {_MIN_DELAY_MS}ms minimum")
        if "dropdown_open" in key and value < _MIN_DROPDOWN_OPEN_MS:
            violations.append(f"{key}={value}ms < {_MIN_DROPDOWN_OPEN_MS}ms minimum")
        if "pre_submit" in key and value < _MIN_PRE_SUBMIT_MS:
            violations.append(f"{key}={value}ms < {_MIN_PRE_SUBMIT_MS}ms minimum")
    return violations


def delay_range(name):
    """(min_ms, max_ms) for a named delay in the active profile"""
    return TIMING[f"{name}_min"], TIMING[f"{name}_max"]


# Initialize TIMING with current settings
TIMING = get_active_timing()

# Validate and fallback to default if constraints violated
_violations = validate_timing(TIMING)

if _violations:
    print("⚠️ TIMING PROFILE VIOLATIONS - Falling back to default profile:")
    for violation in _violations:
        print(f"  - {violation}")
    TIMING = TIMING_PROFILES["default"]
    DEV_TEST_SPEED = False
    SUPER_DEV_SPEED = False
