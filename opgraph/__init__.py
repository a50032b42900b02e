"""Protobuf file persistence and operator arguments for computation graphs.

Most users will use :py:mod:`fileio` to read and write graph definitions and
:py:mod:`argument` to attach named parameters to operators. The message
types live in :py:mod:`proto`.
"""

__version__ = "0.1.0"
