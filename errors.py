"""
Error taxonomy shared by every script.

ConfigurationError - required setting missing, fatal before any work starts
ConnectivityError  - store / object storage unreachable, fatal for the run
SchemaError        - persisted report is missing a required column
PerRecordError     - one record failed, the batch keeps going
"""

MAX_SAMPLE_ERRORS = 5


class SurveyOpsError(Exception):
    """Base class for all survey ops failures."""


class ConfigurationError(SurveyOpsError):
    pass


class ConnectivityError(SurveyOpsError):
    pass


class SchemaError(SurveyOpsError):
    pass


class PerRecordError(SurveyOpsError):
    def __init__(self, record_id, message):
        super().__init__(f"{record_id}: {message}")
        self.record_id = record_id


class ErrorLog:
    """Counts processed/skipped/failed records and keeps a few sample messages."""

    def __init__(self, max_samples=MAX_SAMPLE_ERRORS):
        self.max_samples = max_samples
        self.processed = 0
        self.skipped = 0
        self.failed = 0
        self.samples = []

    def record_processed(self):
        self.processed += 1

    def record_skipped(self):
        self.skipped += 1

    def record_failure(self, error):
        self.failed += 1
        if len(self.samples) < self.max_samples:
            self.samples.append(str(error))

    def summary_lines(self):
        lines = [f"📊 Processed: {self.processed}, skipped: {self.skipped}, failed: {self.failed}"]
        if self.failed:
            lines.append(f"⚠️  Encountered {self.failed} errors during processing:")
            lines.extend(f"  - {message}" for message in self.samples)
            if self.failed > len(self.samples):
                lines.append(f"  ... and {self.failed - len(self.samples)} more errors")
        return lines

    def log_summary(self, logger):
        for line in self.summary_lines():
            logger.info(line)
