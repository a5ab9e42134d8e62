"""Clinical score library.

Independent, deterministic calculators: treatment effect (NNT/ARR/RRR),
kidney function (eGFR), risk scores (CURB-65, Wells DVT, CHA₂DS₂-VASc,
APACHE II), proportion confidence intervals and diagnostic test
accuracy.  None of them depend on the meta-analysis or power modules.

"""

from .models import (  # noqa: F401
    APACHEIIResult,
    CHADSVAScResult,
    ConfidenceInterval,
    CURB65Result,
    DiagnosticTestResult,
    EGFRResult,
    NNTResult,
    ProportionCIResult,
    WellsDVTResult,
)
from .outcomes import calculate_diagnostic_test, calculate_nnt, calculate_proportion_ci  # noqa: F401
from .scores import (  # noqa: F401
    calculate_apache_ii,
    calculate_chads_vasc,
    calculate_curb65,
    calculate_egfr,
    calculate_wells_dvt,
)
