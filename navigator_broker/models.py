"""
Broker request models.

Every inbound request is decoded into one variant of a closed tagged
union, discriminated on ``action``. Fields travel in camelCase on the
wire (``sessionId``, ``tokenType``, ``apiKey``).

Required fields are declared as optional here and checked with
:meth:`BrokerRequest.missing`, so the caller receives one error message
naming every missing field instead of a pydantic error list.
"""
from typing import Annotated, Any, ClassVar, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter


class BrokerRequest(BaseModel):
    """Common behavior of every action request."""

    model_config = ConfigDict(populate_by_name=True, extra='ignore')

    # field name -> label used in validation messages
    required: ClassVar[dict[str, str]] = {}

    def missing(self) -> list[str]:
        """Labels of the required fields that are absent or empty."""
        return [
            label for name, label in self.required.items()
            if not getattr(self, name)
        ]


class CreateSession(BrokerRequest):
    action: Literal['create_session']
    token: Optional[str] = None
    token_type: Optional[str] = Field(default=None, alias='tokenType')

    required: ClassVar[dict[str, str]] = {'token': 'Token'}


class DestroySession(BrokerRequest):
    action: Literal['destroy_session']
    session_id: Optional[str] = Field(default=None, alias='sessionId')


class ProxyRequest(BrokerRequest):
    action: Literal['proxy']
    session_id: Optional[str] = Field(default=None, alias='sessionId')
    endpoint: Optional[str] = None
    method: Optional[str] = None
    body: Any = None


class GetSession(BrokerRequest):
    action: Literal['get_session']
    session_id: Optional[str] = Field(default=None, alias='sessionId')


class SetKey(BrokerRequest):
    action: Literal['set_key']
    session_id: Optional[str] = Field(default=None, alias='sessionId')
    provider: Optional[str] = None
    api_key: Optional[str] = Field(default=None, alias='apiKey')

    required: ClassVar[dict[str, str]] = {
        'session_id': 'Session ID',
        'provider': 'provider',
        'api_key': 'API key',
    }


class RemoveKey(BrokerRequest):
    action: Literal['remove_key']
    session_id: Optional[str] = Field(default=None, alias='sessionId')
    provider: Optional[str] = None

    required: ClassVar[dict[str, str]] = {
        'session_id': 'Session ID',
        'provider': 'provider',
    }


class CheckKey(BrokerRequest):
    action: Literal['check_key']
    session_id: Optional[str] = Field(default=None, alias='sessionId')
    provider: Optional[str] = None

    required: ClassVar[dict[str, str]] = {
        'session_id': 'Session ID',
        'provider': 'provider',
    }


TokenRequest = Annotated[
    Union[CreateSession, DestroySession, ProxyRequest],
    Field(discriminator='action'),
]

VaultRequest = Annotated[
    Union[GetSession, SetKey, RemoveKey, CheckKey, DestroySession],
    Field(discriminator='action'),
]

token_request = TypeAdapter(TokenRequest)
vault_request = TypeAdapter(VaultRequest)


def required_message(labels: list[str]) -> str:
    """Build "A, B, and C are required" style messages."""
    labels = [labels[0][:1].upper() + labels[0][1:], *labels[1:]]
    if len(labels) == 1:
        return f"{labels[0]} is required"
    if len(labels) == 2:
        return f"{labels[0]} and {labels[1]} are required"
    return f"{', '.join(labels[:-1])}, and {labels[-1]} are required"
