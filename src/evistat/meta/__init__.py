"""Meta‑analysis utilities.

This package pools effect sizes extracted from primary studies under a
DerSimonian–Laird random-effects model.  It supports heterogeneity
statistics, Egger's test for publication bias, leave-one-out sensitivity
analysis, subgroup analysis and generation of forest plot data.

"""

from .models import (  # noqa: F401
    EffectSizeType,
    EggerResult,
    PooledResult,
    Study,
    StudyResult,
    SubgroupTest,
)
from .analyzer import (  # noqa: F401
    MetaAnalyzer,
    coerce_studies,
    eggers_regression,
    leave_one_out,
    pool,
    subgroup_analysis,
)
from .effect_sizes import study_from_events, study_from_means  # noqa: F401
