"""Diversity summaries and rarefaction of subsamples."""

from .rarefaction import (
    ChaoRarefactionEstimator, FrequencySample, RichnessEstimator,
    sample_coverage, pielou_evenness, undetected_richness,
    richness_at, coverage_at, size_for_coverage
)
from .summary import DiversitySummarizer, SummaryPlan, sdsumry, summaries_to_frame, taxon_frequencies

__all__ = [
    'ChaoRarefactionEstimator',
    'FrequencySample',
    'RichnessEstimator',
    'sample_coverage',
    'pielou_evenness',
    'undetected_richness',
    'richness_at',
    'coverage_at',
    'size_for_coverage',
    'DiversitySummarizer',
    'SummaryPlan',
    'sdsumry',
    'summaries_to_frame',
    'taxon_frequencies',
]
