"""
Centralized Constants - SINGLE SOURCE OF TRUTH

Field-candidate lists for every logical attribute read from upstream records,
collection-name aliases used to map dashboard metrics onto Appwrite
collections, and the fixed month labels used by histograms.

DO NOT build alias lists inline at call sites - add them here.
"""

from services.field_resolver import FieldCandidates

# =============================================================================
# FIELD CANDIDATES (first match wins)
# =============================================================================

# Ward number as written by the interest sign-up form
WARD_NUMBER_FIELDS = FieldCandidates(
    'ward_number', ('ward_number', 'ward', 'wardId', 'ward_id')
)

# Ward reference on Appwrite documents (users, donors, ...) - holds the ward id
WARD_REFERENCE_FIELDS = FieldCandidates(
    'ward_reference', ('wardId', 'ward_id', 'ward', 'wardid')
)

DISTRICT_FIELDS = FieldCandidates('district', ('District', 'district'))

PANCHAYATH_NAME_FIELDS = FieldCandidates(
    'panchayath_name', ('panchayath_name', 'panchayathName')
)

WARD_TYPE_FIELDS = FieldCandidates('type', ('type',))

RECORD_ID_FIELDS = FieldCandidates('id', ('id', '$id'))

WARD_NAME_FIELDS = FieldCandidates('ward_name', ('ward_name', 'wardName', 'name'))

WARD_COUNCILLOR_FIELDS = FieldCandidates(
    'ward_councillor', ('ward_councillor', 'councillor', 'councillor_id')
)

# Upstream schema spells it "muncipality"
WARD_MUNICIPALITY_FIELDS = FieldCandidates(
    'muncipality', ('muncipality', 'municipality', 'municipality_id')
)

COUNCILLOR_NAME_FIELDS = FieldCandidates(
    'councillor_name', ('councilorName', 'councillorName', 'name')
)

MUNICIPALITY_NAME_FIELDS = FieldCandidates('municipality_name', ('name',))

# Join date - alias fields first, record creation timestamp last
JOINED_DATE_FIELDS = FieldCandidates(
    'joined_date',
    ('joinedDate', 'joined_date', '$createdAt', 'createdAt', 'created_at'),
)

LAST_LOGIN_FIELDS = FieldCandidates(
    'last_login',
    (
        'lastLogin', 'last_login', 'lastLoginDate', 'lastLoginAt',
        'last_login_date', 'last_login_at', 'lastActive', 'last_active',
    ),
)

LOGIN_COUNT_FIELDS = FieldCandidates(
    'login_count', ('loginCount', 'login_count', 'totalLogins', 'total_logins')
)

# =============================================================================
# COLLECTION NAME ALIASES (Appwrite collection names are free text)
# =============================================================================

# Metric key -> aliases, checked case-insensitively.
# Order matters: exact matches are tried alias by alias, then partial matches.
METRIC_COLLECTION_ALIASES = {
    'users': ('user', 'users', 'member', 'members'),
    'blood_donors': ('blood donor', 'blooddonor', 'donor', 'donors', 'blood-donor'),
    'volunteers': ('volunteer', 'volunteers'),
    'donations': ('donation', 'donations'),
    'issue_reports': (
        'issue report', 'issuereport', 'issue', 'issues', 'issue-report',
        'report', 'reports',
    ),
}

# Explicit order - response field order relies on this
METRIC_ORDER = ['users', 'blood_donors', 'volunteers', 'donations', 'issue_reports']

# =============================================================================
# PERSONAL DATA
# =============================================================================

# Any key whose lowercase form contains one of these is stripped from
# interest records before they leave the backend.
PERSONAL_FIELD_MARKERS = (
    'mobile', 'mobilenumber', 'phone', 'phonenumber', 'phone_number',
    'email', 'emailaddress', 'contact', 'contactnumber',
    'address', 'fulladdress', 'personalinfo', 'personal_info',
    'name',
)

# =============================================================================
# CALENDAR
# =============================================================================

MONTH_LABELS = [
    'Jan', 'Feb', 'Mar', 'Apr', 'May', 'Jun',
    'Jul', 'Aug', 'Sep', 'Oct', 'Nov', 'Dec',
]

# Users with a login inside this window count as active
ACTIVE_USER_WINDOW_DAYS = 30
