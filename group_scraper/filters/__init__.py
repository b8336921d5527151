from .criteria import FilterCriteria, FilterResult, FilterStats, apply_filters, evaluate_post

__all__ = ["FilterCriteria", "FilterResult", "FilterStats", "apply_filters", "evaluate_post"]
