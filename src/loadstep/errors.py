# Copyright (c) 2025 Vahab Jabrayilov (vjabrayilov@cs.columbia.edu)
# Copyright (c) 2025 DAPLab of Columbia University (https://daplab.cs.columbia.edu/)
# Copyright (c) 2025 The Trustees of Columbia University in the City of New York

"""Exceptions raised by loadstep."""


class LoadStepError(Exception):
    pass


class ConfigurationError(LoadStepError):
    """Unsupported driver, bad duration or similar; the session never starts."""


class DriverError(LoadStepError):
    """The load tool is missing or exited with an error."""

    def __init__(self, message: str, stdout: str = "", stderr: str = ""):
        super().__init__(message)
        self.stdout = stdout
        self.stderr = stderr


class RunCancelled(LoadStepError):
    """A run was abandoned because the session's cancellation event fired."""


class ParseError(LoadStepError):
    """Tool output did not contain a complete metric summary."""


class CalibrationError(LoadStepError):
    """The single-client baseline run failed."""


class EscalationError(LoadStepError):
    """A run failed after calibration."""

    def __init__(self, message: str, concurrency: int):
        super().__init__(message)
        self.concurrency = concurrency
