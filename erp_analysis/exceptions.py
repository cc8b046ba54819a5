"""
Error and warning types for the ERP analysis pipeline

Fatal problems (bad configuration, malformed input) are raised before any
computation starts. Ambiguous but usable situations are reported as warnings.
"""


class ConfigurationError(ValueError):
    """Invalid analysis parameters (filter cutoffs, window lengths, tolerances)"""


class MalformedInputError(ValueError):
    """Sample table does not satisfy the named-column contract"""


class ToleranceOverlapWarning(UserWarning):
    """Short and long pulse-width bands overlap; the short band wins ties"""


class EmptyResultWarning(UserWarning):
    """A trial class collected no epochs, so its average is undefined"""
