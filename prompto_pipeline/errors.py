"""Error taxonomy shared by the scripts and the read API."""


class PipelineError(Exception):
    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class NotFound(PipelineError):
    """A storage blob or Firestore document does not exist."""
    status_code = 404


class MalformedInput(PipelineError):
    """JSON with no usable record array, or an invalid request field."""
    status_code = 400


class Forbidden(PipelineError):
    status_code = 403


class WriteFailure(PipelineError):
    """Firestore rejected a read or write the pipeline depends on."""
    status_code = 500
