# jsonpilot/errors.py


class JsonPilotError(Exception):
    pass


class DocumentNotJSON(JsonPilotError):
    """
    The editor content does not parse. Terminal for a whole patch batch.
    """

    def __init__(self, detail: str = ""):
        self.detail = detail
        message = "Original content is not valid JSON"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message)


class OperationApplyError(JsonPilotError):
    """
    A single operation failed against the original document. Non-terminal.
    """

    def __init__(self, index: int, message: str):
        self.index = index
        self.message = message
        super().__init__(f"Operation {index + 1}: {message}")


class PreviewApplyError(JsonPilotError):
    pass


class FileNotOpen(JsonPilotError):
    def __init__(self, path: str):
        self.path = path
        super().__init__(f'File "{path}" is not currently open in the editor')


class WrongFileType(JsonPilotError):
    def __init__(self, path: str, language: str):
        self.path = path
        self.language = language
        super().__init__(f'File "{path}" is not a JSON file (detected: {language})')


class InvalidOperation(JsonPilotError):
    pass


class InvalidTransition(JsonPilotError):
    pass


class ReviewNotFound(JsonPilotError):
    def __init__(self, review_id: str):
        self.review_id = review_id
        super().__init__(f"Unknown or expired patch review: {review_id}")


class MaxRetryErrorsException(JsonPilotError):
    pass


class TokenFetchError(JsonPilotError):
    pass
