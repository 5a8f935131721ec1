# duewatch/core/contract.py
"""
Duewatch Evaluation Contract

This module defines the locked thresholds, labels and versioning for how
duewatch maps trigger progress -> due-ness and severity.

If you change any constants in here, bump DUEWATCH_EVALUATION_VERSION.
"""

DUEWATCH_EVALUATION_VERSION = "0.1.0"

# Labels exposed in EvaluationResult.next_due_label
NOT_CALCULATED_LABEL = "not calculated"
OVERDUE_LABEL = "overdue"

# Progress is clamped into this range after rounding
PROGRESS_MIN = 0
PROGRESS_MAX = 100

# A routine is overdue once its rounded progress reaches this value
OVERDUE_AT_PERCENT = 100

# Severity bands (progress percent, lower bound inclusive)
WARNING_AT_PERCENT = 70
CRITICAL_AT_PERCENT = 90

# Next-due estimate for runtime triggers when no shift schedule is known
DEFAULT_HOURS_PER_DAY = 8.0

# Window used for average runtime per day
AVERAGE_RUNTIME_WINDOW_DAYS = 30

# Delta / change-detection trigger (progress points between two runs)
DEFAULT_PROGRESS_JUMP_POINTS = 20.0
