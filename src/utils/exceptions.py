class AnalysisError(Exception):
    """Base class for anything that aborts a report run"""
    pass
class DatasetDownloadError(AnalysisError):
    """A source table could not be fetched or parsed"""
    pass
class DataProcessingError(AnalysisError):
    """Raw rows do not fit the expected layout or cannot be cleaned"""
    pass
class ConfigError(AnalysisError):
    """A setting from the environment or .env is invalid"""
    pass
class ModelFittingError(AnalysisError):
    """A statistical test or ARIMA model cannot be fitted to the data"""
    pass
