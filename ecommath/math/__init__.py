"""
Numeric core of ecommath: distance matrices, PCA, intercorrelation
diagnostics, correlation ordering and multidimensional scaling.
"""
