"""Sample size and power analysis.

Closed-form sample-size formulas for common study designs and the
matching power functions.  The main entry points are
:func:`sample_size`, which returns the total number of participants
needed, and :func:`power`, its functional inverse.
"""

from .models import SampleSizeRequest, StudyType
from .calculator import power, resolve_study_type, sample_size, sample_size_per_group

__all__ = [
    "SampleSizeRequest",
    "StudyType",
    "power",
    "resolve_study_type",
    "sample_size",
    "sample_size_per_group",
]
