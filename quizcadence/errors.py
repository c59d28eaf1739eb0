class QuizCadenceError(Exception):
    pass


class ValidationError(QuizCadenceError):
    """Malformed submission or request; always surfaced before any write."""


class NotFoundError(QuizCadenceError):
    pass


class SchedulingFault(QuizCadenceError):
    """Failure in a best-effort step of the submission flow.

    Built and logged by the orchestrator, never raised to a caller.
    """

    def __init__(self, step: str, cause: Exception, *, user_id: str, quiz_id: int, score: int):
        super().__init__(f"{step} failed: {cause}")
        self.step = step
        self.cause = cause
        self.user_id = user_id
        self.quiz_id = quiz_id
        self.score = score


class AnalyticsFault(QuizCadenceError):
    pass
