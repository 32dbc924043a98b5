"""stats-digest: summarize weekly statistics workbooks into report-ready data."""

import logging

__version__ = "0.3.0"

EXPECTED_SHEETS: list[str] = [
    "VW_Abnormal_IDs",
    "VW_ICP_ApiSe_Stats",
    "VW_ICPSeErrorsDetails",
    "VW_MemUploadTCount",
    "VW_SD_SeErrorDetails",
    "VW_SD_SeErrorDetailsIC",
    "VW_SD_SeHitCount",
]

DEFAULT_FILE_PATTERN = "StatsReports_yyyyMMdd.xlsx"

logging.getLogger(__name__).addHandler(logging.NullHandler())
