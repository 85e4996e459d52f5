"""Column layouts for NCES school directory CSV files.

Two physical layouts exist. The headered layout is addressed by header
name through an ordered alias list per field; the headerless layout is
addressed by fixed zero-based column position. Both tables live here so a
producer-side schema change is a one-place edit.
"""

# Headered layout: field -> header aliases, tried in order. The first alias
# with a non-empty value wins.
HEADER_ALIASES: dict[str, tuple[str, ...]] = {
    "name": ("SCH_NAME", "SCHOOL_NAME", "NAME"),
    "nces_id": ("NCESSCH", "NCES_ID", "SCHOOLID"),
    "state": ("ST", "STATE"),
    "state_name": ("STATENAME", "STATE_NAME"),
    "city": ("LCITY", "CITY"),
    "address": ("LSTREET1", "ADDRESS"),
    "zip": ("LZIP", "ZIP"),
    "phone": ("PHONE",),
    "website": ("WEBSITE",),
    "level": ("LEVEL", "SCH_LEVEL", "SCHOOL_LEVEL"),
    "school_type": ("SCH_TYPE_TEXT", "SCH_TYPE", "SCHOOL_TYPE", "CHARTER_TEXT"),
    "operational_status": ("SY_STATUS_TEXT", "OPERATIONAL_STATUS", "STATUS"),
    "district_nces_id": ("LEAID", "LEA_ID", "DISTRICT_ID"),
    "district_name": ("LEA_NAME", "DISTRICT_NAME"),
    "county": ("CNTY", "COUNTY"),
    "latitude": ("LAT",),
    "longitude": ("LON",),
    "school_year": ("SCHOOL_YEAR", "SY_YEAR"),
    "sy_status": ("SY_STATUS", "SY_STATUS_TEXT"),
    "charter_status": ("CHARTER", "CHARTER_TEXT"),
    "magnet_status": ("MAGNET", "MAGNET_TEXT"),
    "virtual_status": ("VIRTUAL", "VIRTUAL_TEXT"),
    "title1_status": ("TITLE1_STATUS", "TITLE_I_ELIGIBLE"),
}

# Headered lines with fewer tokens than this are skipped.
HEADERED_MIN_COLUMNS = 5

# Headerless ("Part 2") layout: field -> zero-based column index.
# 0=School Year, 2=State Name, 3=State Abbrev, 4=School Name, 5=District Name,
# 9=LEA ID, 11=NCES School ID, 31=Operational Status, 62=School Level.
HEADERLESS_COLUMNS: dict[str, int] = {
    "school_year": 0,
    "state_name": 2,
    "state": 3,
    "name": 4,
    "district_name": 5,
    "district_nces_id": 9,
    "nces_id": 11,
    "county": 14,
    "city": 16,
    "zip": 18,
    "address": 20,
    "latitude": 22,
    "longitude": 23,
    "phone": 27,
    "website": 28,
    "operational_status": 31,
    "sy_status": 31,
    "school_type": 35,
    "charter_status": 36,
    "magnet_status": 37,
    "virtual_status": 38,
    "title1_status": 45,
    "level": 62,
}

# A headerless file whose first line has fewer columns than this is not the
# layout HEADERLESS_COLUMNS describes.
HEADERLESS_MIN_COLUMNS = max(HEADERLESS_COLUMNS.values()) + 1

# Fields stored as repaired identifiers (scientific notation undone).
ID_FIELDS = frozenset({"nces_id", "district_nces_id"})

# Fields parsed as floats.
FLOAT_FIELDS = frozenset({"latitude", "longitude"})

# NCES LEA directory (district) file: header -> DistrictRecord field.
DISTRICT_COLUMN_MAP: dict[str, str] = {
    "LEAID": "nces_id",
    "ST_LEAID": "state_lea_id",
    "LEA_NAME": "name",
    "ST": "state",
    "STATENAME": "state_name",
    "LSTREET1": "address",
    "LCITY": "city",
    "LZIP": "zip",
    "LZIP4": "zip4",
    "PHONE": "phone",
    "WEBSITE": "website",
    "LEA_TYPE": "lea_type",
    "LEA_TYPE_TEXT": "lea_type_text",
    "CHARTER_LEA": "charter_lea",
    "SY_STATUS": "operational_status",
    "SY_STATUS_TEXT": "operational_status_text",
    "GSLO": "lowest_grade",
    "GSHI": "highest_grade",
    "OPERATIONAL_SCHOOLS": "operational_schools",
}
