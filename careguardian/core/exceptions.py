"""Business errors raised by the scheduling engine.

Every error carries a stable ``code`` and a message that is safe to show to
the caller. Routes turn them into HTTP responses with ``to_http``.
"""

from fastapi import HTTPException, status


class SchedulingError(Exception):
    code = 'scheduling_error'
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = 'The request could not be completed.'

    def __init__(self, message: str | None = None):
        self.message = message or self.default_message
        super().__init__(self.message)

    def to_http(self) -> HTTPException:
        return HTTPException(
            status_code=self.status_code,
            detail={'code': self.code, 'message': self.message},
        )


class NotFound(SchedulingError):
    code = 'not_found'
    status_code = status.HTTP_404_NOT_FOUND
    default_message = 'Not found.'


class Forbidden(SchedulingError):
    code = 'forbidden'
    status_code = status.HTTP_403_FORBIDDEN
    default_message = 'You are not allowed to perform this action.'


class SlotUnavailable(SchedulingError):
    code = 'slot_unavailable'
    status_code = status.HTTP_409_CONFLICT
    default_message = 'This time slot is not available.'


class InvalidState(SchedulingError):
    code = 'invalid_state'
    status_code = status.HTTP_409_CONFLICT
    default_message = 'This action is not allowed in the current appointment state.'


class NoOp(SchedulingError):
    code = 'no_op'
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = 'No fields you are allowed to change were provided.'


class InvalidField(SchedulingError):
    code = 'invalid_field'
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = 'One of the submitted values is not valid.'
