from .retry import (
    JitterStrategy as JitterStrategy,
    calculate_jittered_delay as calculate_jittered_delay,
    calculate_resurrect_timeout as calculate_resurrect_timeout,
    exponential_ceiling as exponential_ceiling,
)
