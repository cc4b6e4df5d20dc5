"""Helper library for the optimization chapter notebooks.

Notebooks import the plotting and tensor helpers from here, e.g.
``from optbook import plotting, tensor_utils``.
"""

__version__ = "0.1.0"
