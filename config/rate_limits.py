"""
Rate limit configuration for host canvas insertion.

The host throttles bulk element insertion without documenting the limit;
these values were tuned against it. Adjust per host integration.
"""

# Reference pacing for template page generation (seconds)
TEMPLATE_INSERTION_LIMITS = {
    "batch_size": 8,
    "delay_between_elements": 0.3,
    "delay_between_batches": 3.0,
    "page_settle_delay": 0.5,
}

# Host calls are not time-bounded unless a timeout is configured
HOST_CALL_TIMEOUT_SECONDS = None

# Settings for different usage scenarios
INSERTION_PROFILES = {
    "conservative": {
        "batch_size": 5,
        "delay_between_elements": 0.5,
        "delay_between_batches": 5.0,
        "page_settle_delay": 1.0,
        "description": "Small batches with long pauses - slowest but safest"
    },
    "balanced": {
        "batch_size": 6,
        "delay_between_elements": 0.4,
        "delay_between_batches": 4.0,
        "page_settle_delay": 0.75,
        "description": "Between conservative and reference, for slower host sessions"
    },
    "reference": {
        **TEMPLATE_INSERTION_LIMITS,
        "description": "Tuned default for template page generation"
    },
    "aggressive": {
        "batch_size": 10,
        "delay_between_elements": 0.2,
        "delay_between_batches": 2.0,
        "page_settle_delay": 0.5,
        "description": "Larger batches - fastest but may hit insertion throttling"
    },
}
