from dataclasses import dataclass
from typing import MutableMapping, Optional

from fastapi import Depends, Request

from .errors import AuthError
from .security import get_current_user_id


MESSAGE_KEY = "message"


@dataclass
class RequestContext:
    """
    Per-request view of the caller.

    - user_id: identity resolved from the access token, None when anonymous.
    - state: the signed cookie session; holds the status message shown after a redirect.
    """

    user_id: Optional[int]
    state: MutableMapping

    def require_user(self) -> int:
        if self.user_id is None:
            raise AuthError()
        return self.user_id

    def flash(self, message: str) -> None:
        self.state[MESSAGE_KEY] = message

    def pop_message(self) -> Optional[str]:
        return self.state.pop(MESSAGE_KEY, None)


def get_request_context(
    request: Request,
    user_id: Optional[int] = Depends(get_current_user_id),
) -> RequestContext:
    return RequestContext(user_id=user_id, state=request.session)
