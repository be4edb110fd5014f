"""
Configuration for the Hafalan Report Portal

Contains spreadsheet source URLs, the score command endpoint, assessment
scales and portal (login) definitions.
To point the portal at another spreadsheet, simply edit the URLs below.
"""

# =============================================================================
# DATA SOURCES
# =============================================================================
# Each table is a published Google Sheets CSV export

_SHEET_BASE = (
    "https://docs.google.com/spreadsheets/d/e/"
    "2PACX-1vRbz8LUyBo51HkpA0O0_8srtlG-7RxWLvesNbnmC3shQB9qC6EbUzx3dvXp5lWnmk7BR3sGuERPWZbg"
    "/pub?gid={gid}&single=true&output=csv"
)

TEACHERS = "teachers"
STUDENTS = "students"
PRINCIPALS = "principals"
SCORES = "scores"
CURRICULUM_ITEMS = "curriculum-items"

TABLES = [TEACHERS, STUDENTS, PRINCIPALS, SCORES, CURRICULUM_ITEMS]

CSV_URLS = {
    TEACHERS: _SHEET_BASE.format(gid="735271315"),
    STUDENTS: _SHEET_BASE.format(gid="1983478163"),
    PRINCIPALS: _SHEET_BASE.format(gid="1638530657"),
    SCORES: _SHEET_BASE.format(gid="0"),
}

# Name used in error messages
TABLE_LABELS = {
    TEACHERS: "Teacher",
    STUDENTS: "Student",
    PRINCIPALS: "Principal",
    SCORES: "Score",
    CURRICULUM_ITEMS: "Hafalan",
}

# Bundled curriculum list (no network call)
HAFALAN_DATA_FILE = "data/hafalan.json"

# Apps Script endpoint for addScore / updateScore / deleteScore
WEB_APP_URL = (
    "https://script.google.com/macros/s/"
    "AKfycbzpg2KxrmSatA7Hs0iqAuyWj1nTlHQL60gFy0rdNh7WYPkvWHLY6S2W_Ypzffe0pYcb/exec"
)

# One-shot requests, no timeout
REQUEST_TIMEOUT = None

# =============================================================================
# ASSESSMENT SCALE
# =============================================================================

SCORE_LEVELS = ["BB", "MB", "BSH", "BSB"]

SCORE_VALUES = {"BB": 1, "MB": 2, "BSH": 3, "BSB": 4}

SCORE_LABELS = {
    "BB": "Belum Berkembang",
    "MB": "Mulai Berkembang",
    "BSH": "Berkembang Sesuai Harapan",
    "BSB": "Berkembang Sangat Baik",
}

SCORE_COLORS = {
    "BB": "#dc3545",     # Red
    "MB": "#ffc107",     # Yellow
    "BSH": "#28a745",    # Green
    "BSB": "#047857",    # Emerald
}

CATEGORY_SURAH = "Hafalan Surah Pendek"
CATEGORY_DOA = "Hafalan Doa Sehari-hari"
CATEGORY_HADIST = "Hafalan Hadist"

CATEGORIES = [CATEGORY_SURAH, CATEGORY_DOA, CATEGORY_HADIST]

# Input tabs in the teacher portal: one per category and semester
INPUT_TABS = {
    "surah1": {"label": "Semester 1 - Surah Pendek", "category": CATEGORY_SURAH, "semester": 1},
    "surah2": {"label": "Semester 2 - Surah Pendek", "category": CATEGORY_SURAH, "semester": 2},
    "doa1": {"label": "Semester 1 - Doa Sehari-hari", "category": CATEGORY_DOA, "semester": 1},
    "doa2": {"label": "Semester 2 - Doa Sehari-hari", "category": CATEGORY_DOA, "semester": 2},
    "hadist1": {"label": "Semester 1 - Hadist", "category": CATEGORY_HADIST, "semester": 1},
    "hadist2": {"label": "Semester 2 - Hadist", "category": CATEGORY_HADIST, "semester": 2},
}

ITEMS_PER_PAGE = 10

# =============================================================================
# PORTALS
# =============================================================================
# Each portal logs in by matching the entered PIN against a public column

PORTALS = {
    "teacher": {
        "title": "Login Portal Guru",
        "name": "Portal Guru",
        "table": TEACHERS,
        "login_field": "Phone",
    },
    "parent": {
        "title": "Login Portal Orang Tua",
        "name": "Portal Orang Tua",
        "table": STUDENTS,
        "login_field": "NISN",
    },
    "principal": {
        "title": "Login Portal Kepala Sekolah",
        "name": "Portal Kepala Sekolah",
        "table": PRINCIPALS,
        "login_field": "Phone",
    },
}

PORTAL_COLORS = {
    "teacher": "#10b981",      # Emerald
    "parent": "#3b82f6",       # Blue
    "principal": "#059669"     # Dark emerald
}

# =============================================================================
# SCHOOL PROFILE
# =============================================================================

SCHOOL_INFO = {
    "Nama Sekolah": "TK IT Harvysyah",
    "Alamat": "Jalan Sadar Timur Gang Rahmad No. 042",
    "Desa/Kelurahan": "Sekip",
    "Kecamatan": "Lubuk Pakam",
    "Kabupaten": "Deli Serdang",
    "Provinsi": "Sumatera Utara",
    "Kode Pos": "20517",
    "Status Sekolah": "Swasta",
    "Kepala Sekolah": "Yusri Elvida Daulay",
    "Telepon": "081262006253",
}
