"""
Analysis pipeline: signal collection, scoring, findings, recommendation, lead.
"""

from .pipeline import (
    AnalysisNotFound,
    AnalysisRequest,
    AnalysisResult,
    DailyLimitExceeded,
    InvalidAnalysisInput,
    calculate_lead_score,
    parse_analysis_request,
    rerun_analysis,
    run_analysis,
)

__all__ = [
    "AnalysisNotFound",
    "AnalysisRequest",
    "AnalysisResult",
    "DailyLimitExceeded",
    "InvalidAnalysisInput",
    "calculate_lead_score",
    "parse_analysis_request",
    "rerun_analysis",
    "run_analysis",
]
