"""
Ecommath package for multivariate analysis of tabular e-commerce data.

Distance matrices under several metrics, PCA with intercorrelation
diagnostics, and multidimensional scaling over a typed dataset snapshot.
"""

__version__ = '0.1.0'

from ecommath.components.config import Config, ConfigManager
from ecommath.dataset import ColumnSpec, ColumnType, Dataset, Schema, load_snapshot
from ecommath.run import AnalysisRun
