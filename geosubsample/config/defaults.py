# geosubsample/config/defaults.py
"""Default configuration values; config.yml overrides any of them."""

from pathlib import Path

PROJECT_ROOT = Path(__file__).resolve().parent.parent.parent
LOGS_DIR = PROJECT_ROOT / 'logs'

PATHS = {
    'project_root': str(PROJECT_ROOT),
    'logs_dir': str(LOGS_DIR),
}

# Shared by all samplers
SAMPLING = {
    'seed': None,               # None draws fresh entropy (logged for replay)
    'iterations': 100,
    'output_mode': 'locations',  # locations, full
    'distance_metric': None,    # great_circle, geodesic, euclidean; None picks by crs
    'crs': 'geographic',        # geographic (lon/lat degrees), planar
    'site_coordinates': 'first',  # first, centroid
}

# Radius-constrained sampling (cookies)
RADIAL = {
    'radius': 700.0,            # km for geographic data
    'site_quota': 12,
    'weighted': False,
    'weight_power': 2.0,        # inverse-square decay
    'restrict_seeds': False,
}

# Nearest-neighbour cluster sampling (clustr)
CLUSTER = {
    'max_diameter': 3000.0,     # MST length cap, km for geographic data
    'site_quota': None,
    'min_sites': 3,
}

# Latitude band sampling (bandit)
BAND = {
    'band_width': 20.0,         # degrees
    'site_quota': 12,
    'iterations_per_band': 100,
    'use_absolute_latitude': False,
}

# Diversity summary (sdsumry)
SUMMARY = {
    'classical_quota': None,
    'coverage_quota': None,
    'omit_most_common_taxon': False,
    'allow_extrapolation': False,
    'n_bootstrap': 50,
    'confidence_level': 0.95,
}

PROCESSING = {
    'max_workers': 1,           # >1 dispatches iterations to a worker pool
    'parallel_backend': 'process',  # process, thread
    'chunk_size': 8,            # iterations per task when running in processes
}

LOGGING = {
    'level': 'INFO',
    'file_enabled': False,
    'file_name': 'geosubsample.log',
    'max_file_size': 20 * 1024 * 1024,
    'backup_count': 3,
}
