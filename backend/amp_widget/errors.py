class WidgetServiceError(Exception):
    """Base class for errors raised by the widget service."""


class ConfigNotFoundError(WidgetServiceError):
    def __init__(self, config_id: str):
        super().__init__(f"Configuration not found: {config_id}")
        self.config_id = config_id


class ProfileLookupError(WidgetServiceError):
    def __init__(self, message: str, status_code: int = 0):
        super().__init__(message)
        self.status_code = status_code


class CopyGenerationError(WidgetServiceError):
    pass


class ImageSearchError(WidgetServiceError):
    def __init__(self, message: str, status_code: int = 0):
        super().__init__(message)
        self.status_code = status_code
