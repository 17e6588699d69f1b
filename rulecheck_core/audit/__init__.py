from .reporter import VerificationReporter

__all__ = ["VerificationReporter"]
