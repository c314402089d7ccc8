"""A collection of constants"""

PLUS = 1
MINUS = -1

DEFAULT_CHARGE = 1

CHARGE_AND_SEPARATOR = " and "

DEFAULT_MIN_CHARGE = 2
DEFAULT_MAX_CHARGE = 4

CHARGE_RANGE_ENV = "MGFTOOLS_CHARGE_RANGE"

TEMP_SUFFIX = "_temp"

#### MGF vocabulary
MGF_BEGIN = "BEGIN IONS"
MGF_END = "END IONS"

MGF_TITLE = "TITLE"
MGF_CHARGE = "CHARGE"
MGF_PEPMASS = "PEPMASS"
MGF_RTINSECONDS = "RTINSECONDS"
MGF_SCANS = "SCANS"

# Recognized but not interpreted
MGF_TOLU = "TOLU"
MGF_TOL = "TOL"
MGF_SEQ = "SEQ"
MGF_COMP = "COMP"
MGF_ETAG = "ETAG"
MGF_TAG = "TAG"
MGF_RAWSCANS = "RAWSCANS"
MGF_INSTRUMENT = "INSTRUMENT"

#### MSP vocabulary
MSP_CHARGE = "Charge"
MSP_COMMENT = "Comment"
MSP_PARENT = "Parent"
MSP_SCAN = "Scan"
MSP_RETENTION_TIME = "RetentionTime"

#### Record fields that a key line can populate
TITLE_FIELD = "title"
CHARGE_FIELD = "charge"
PRECURSOR_FIELD = "precursor"
RETENTION_TIME_FIELD = "retention_time"
SCAN_NUMBER_FIELD = "scan_number"
COMMENT_FIELD = "comment"
