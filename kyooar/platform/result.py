"""
Discriminated result returned by every ApiClient endpoint.

    result = await client.get_questionnaire(org_id, questionnaire_id)
    if isinstance(result, Ok):
        questionnaire = result.value
    else:
        show(result.error.message)
"""

from dataclasses import dataclass, field
from typing import Any, Generic, Optional, TypeVar, Union

from kyooar.platform.errors import ApiError

T = TypeVar("T")


@dataclass(frozen=True)
class Ok(Generic[T]):
    value: T
    meta: Optional[dict] = field(default=None)

    @property
    def is_ok(self) -> bool:
        return True

    def unwrap(self) -> T:
        return self.value

    def unwrap_or(self, default: Any) -> T:
        return self.value


@dataclass(frozen=True)
class Err:
    error: ApiError

    @property
    def is_ok(self) -> bool:
        return False

    def unwrap(self):
        raise self.error

    def unwrap_or(self, default: Any) -> Any:
        return default


Result = Union[Ok[T], Err]
